[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tfstepdebug"
version = "0.1.0"
description = "Step through a Terraform plan one resource at a time, applying, skipping or inspecting each change interactively"
requires-python = ">=3.10"
dependencies = []
keywords = ["terraform", "debugger", "infrastructure", "plan", "interactive"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Debuggers",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tfstepdebug = "tfstepdebug.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["tfstepdebug"]

[tool.pytest.ini_options]
addopts = "-ra"
