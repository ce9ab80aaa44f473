[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cx16emu"
version = "0.1.0"
description = "Components of a Commander X16 emulator: real-time clock, system management controller, serial bus, MIDI stream decoding, command-line options, console helpers and KERNAL IEEE interception."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "emulator",
    "commander-x16",
    "6502",
    "retrocomputing",
    "rtc",
    "midi",
    "iec-bus",
    "kernal",
]
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
    "Topic :: System :: Emulators",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["cx16emu"]

[tool.hatch.build.targets.sdist]
include = ["cx16emu", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
