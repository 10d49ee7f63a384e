[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fusecore"
version = "0.1.0"
description = "FUSE protocol structures, access checks, splice pipe pools and POSIX conformance checks for file systems"
requires-python = ">=3.10"
dependencies = []
keywords = ["fuse", "filesystem", "splice", "posix", "xattr"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fusecore"]

[tool.pytest.ini_options]
addopts = "-ra"
