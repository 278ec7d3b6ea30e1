[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kubegres"
version = "0.1.0"
description = "Reconciliation core for a PostgreSQL cluster operator: blocking operations, backup states and the reconcile loop"
requires-python = ">=3.10"
dependencies = []
keywords = ["postgresql", "operator", "reconciler", "cluster", "blocking-operation", "backup"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Clustering",
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kubegres"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
