[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "knevent"
version = "0.1.0"
description = "Build CloudEvents from the command line, print them and send them to HTTP endpoints"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["cloudevents", "events", "cli", "eventing", "http"]
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
    "Topic :: Internet",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
kn-event = "knevent.cli:main"
kn-event-sender = "knevent.sender_cmd:main"

[tool.hatch.build.targets.wheel]
packages = ["knevent"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
