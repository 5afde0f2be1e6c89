[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dfutools"
version = "0.1.0"
description = "Intel HEX, Motorola S-record and OSD font file handling plus F2/L1 option byte encoding for DFU tooling"
requires-python = ">=3.10"
dependencies = []
keywords = ["dfu", "intel-hex", "srec", "s19", "option-bytes", "firmware", "osd"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["dfutools"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
