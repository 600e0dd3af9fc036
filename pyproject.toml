[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "shpool"
version = "0.1.0"
description = "Persistent named shell sessions: wire protocol, session control commands and daemon helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["shell", "session", "terminal", "tty", "unix-socket", "detach"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Shells",
    "Topic :: Terminals",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
shpool = "shpool.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["shpool"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
