[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ircchat"
version = "0.1.0"
description = "Chat client protocol, WebSocket transport and SQLite-backed storage for a room-based chat service"
requires-python = ">=3.10"
dependencies = [
    "websocket-client",
]
keywords = ["chat", "websocket", "rooms", "sqlite", "messaging"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: Database",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["ircchat"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
