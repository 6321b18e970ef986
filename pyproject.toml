[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bunorm"
version = "0.1.0"
description = "Building blocks for SQL tooling: tag and template parsing, time parsing, naming helpers and a database migration runner"
requires-python = ">=3.10"
dependencies = []
keywords = ["sql", "migrations", "database", "parser", "sqlite"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Database",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["bunorm"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
