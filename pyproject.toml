[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mercurehub"
version = "0.1.0"
description = "Core of a Mercure hub: topic selectors, subscribers, metrics and local or Redis-backed update transports"
requires-python = ">=3.10"
keywords = ["mercure", "server-sent-events", "sse", "pubsub", "hub", "redis", "uri-template"]
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
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "redis",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["mercurehub"]

[tool.pytest.ini_options]
addopts = "-ra"
