[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xv6sim"
version = "0.1.0"
description = "A simulation of the storage and I/O layers of a small teaching Unix kernel: a logged block file system, buffer cache, pipes, console, keyboard decoding, shell parser and user utilities."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "operating-system",
    "file-system",
    "education",
    "unix",
    "simulation",
    "buffer-cache",
    "write-ahead-log",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xv6sim-mkfs = "xv6sim.mkfs:main"
xv6sim-grep = "xv6sim.grep:main"

[tool.hatch.build.targets.wheel]
packages = ["xv6sim"]

[tool.hatch.build.targets.sdist]
include = ["xv6sim", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
