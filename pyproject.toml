[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "addonmgr"
version = "0.7.1"
description = "Addon lifecycle workflows for Kubernetes clusters: workflow building, parameter injection, resource labelling and load-test tooling"
requires-python = ">=3.10"
keywords = ["kubernetes", "addons", "argo", "workflows", "kubectl"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
addonmgr-loadtest = "addonmgr.loadtest:main"

[tool.hatch.build.targets.wheel]
packages = ["addonmgr"]

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
ignore_missing_imports = true
