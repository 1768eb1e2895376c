"""A distributed file store: a primary server, extension-specific backends and a client."""

__version__ = "0.1.0"