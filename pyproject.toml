[build-system]
requires = ["setuptools>=61.0"]
build-backend = "setuptools.build_meta"

[project]
name = "sysstarter"
version = "0.1.0"
description = "Dependency-ordered runner for startup items, with launch wire-format helpers"
requires-python = ">=3.10"
keywords = ["startup", "init", "boot", "startup-items", "services"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Boot :: Init",
]
dependencies = [
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
sysstarter = "sysstarter.starter:main"

[tool.setuptools.packages.find]
include = ["sysstarter*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
