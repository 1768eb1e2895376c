"""Configurations of the secondary storage servers and the command that starts one."""

from __future__ import annotations

import argparse
import os
import sys

from splitdfs.fsutil import home_dir
from splitdfs.secondary import SecondaryConfig, SecondaryServer

_CONFIGS: dict[str, SecondaryConfig] = {
    "S2": SecondaryConfig(
        name="S2",
        port=1202,
        extension=".pdf",
        label="PDF",
        download_type_error="Error: Not a PDF file or invalid extension.\n",
        not_found_error="Error: File not found on server.\n",
        remove_type_error="Error: Not a PDF file.\n",
        archive=True,
        archive_type_error=None,
    ),
    "S3": SecondaryConfig(
        name="S3",
        port=1203,
        extension=".txt",
        label="TXT",
        download_type_error="Error: Not a TXT file or invalid extension.\n",
        not_found_error="Error: File not found on server.\n",
        remove_type_error="Error: Not a TXT file.\n",
        archive=True,
        archive_type_error="Error: S3 only handles .txt files.\n",
    ),
    "S4": SecondaryConfig(
        name="S4",
        port=1206,
        extension=".zip",
        label="ZIP",
        download_type_error="Error: Not a ZIP file.\n",
        not_found_error="Error: File not find on the Server.\n",
        remove_type_error="Error: Not a ZIP file.\n",
        archive=False,
        archive_type_error=None,
    ),
}


def config_for(name: str) -> SecondaryConfig:
    """Return the configuration of the secondary server called ``name`` (S2, S3 or S4)."""
    try:
        return _CONFIGS[name.upper()]
    except KeyError:
        known = ", ".join(sorted(_CONFIGS))
        raise ValueError(f"unknown server {name!r}; expected one of {known}") from None


def build_server(name: str, home: str | os.PathLike[str] | None = None) -> SecondaryServer:
    """Create the named secondary server storing files under ``home`` (default ``$HOME``)."""
    config = config_for(name)
    return SecondaryServer(config, home if home is not None else home_dir())


def main(argv: list[str] | None = None) -> int:
    """Run one secondary server until interrupted."""
    parser = argparse.ArgumentParser(description="Run a secondary storage server.")
    parser.add_argument("name", choices=sorted(_CONFIGS), type=str.upper, help="server to run")
    parser.add_argument("--host", default="", help="address to bind (default: all interfaces)")
    args = parser.parse_args(argv)

    try:
        server = build_server(args.name)
    except RuntimeError as exc:
        print(exc, file=sys.stderr)
        return 1

    try:
        server.serve_forever(args.host)
    except KeyboardInterrupt:
        return 0
    except OSError as exc:
        print(f"Bind failed: {exc}", file=sys.stderr)
        return 1
    return 0