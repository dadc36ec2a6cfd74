[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nd100kit"
version = "0.1.0"
description = "Components of an ND-100 minicomputer emulator: BPUN loader, SMD disk controller, terminal device and command-line configuration"
requires-python = ">=3.10"
dependencies = []
keywords = ["emulator", "nd-100", "minicomputer", "smd", "bpun", "retrocomputing"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nd100kit"]

[tool.hatch.build.targets.sdist]
include = ["nd100kit", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
