[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lstorage"
version = "1.0.0"
description = "Node-local storage resources: a size type, a JSON volume store, admission webhooks, a scheduler extender and a storage controller"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "storage",
    "local-storage",
    "volumes",
    "kubernetes",
    "scheduler-extender",
    "admission-webhook",
    "controller",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lstorage"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
