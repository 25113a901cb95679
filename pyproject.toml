[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tinylsm"
version = "0.1.0"
description = "Building blocks of a small LSM-tree key-value store with a Redis-style command layer"
requires-python = ">=3.10"
dependencies = []
keywords = ["lsm", "key-value", "skiplist", "wal", "bloom-filter", "redis", "storage"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tinylsm"]

[tool.pytest.ini_options]
addopts = "-ra"
