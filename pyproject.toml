[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "splitdfs"
version = "0.1.0"
description = "A small distributed file store that routes files to backend servers by extension"
requires-python = ">=3.10"
dependencies = []
keywords = ["distributed", "file-server", "sockets", "tcp", "file-transfer"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
splitdfs-primary = "splitdfs.primary:main"
splitdfs-backend = "splitdfs.servers:main"
splitdfs-client = "splitdfs.client:main"

[tool.hatch.build.targets.wheel]
packages = ["splitdfs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
