[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gxutil"
version = "0.1.0"
description = "Small utilities for services: safe background threads, task and worker pools, timer wheels, system stats, string and path helpers."
requires-python = ">=3.10"
keywords = ["timer-wheel", "task-pool", "worker-pool", "threads", "utilities", "cgroup"]
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
    "Topic :: Software Development :: Libraries",
    "Typing :: Typed",
]
dependencies = [
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["gxutil"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
