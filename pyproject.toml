[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "memberwait"
version = "0.1.0"
description = "Polling helpers and wait criteria for checking member-cluster resources in end-to-end tests"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["testing", "e2e", "polling", "kubernetes", "wait", "criteria"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["memberwait"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
