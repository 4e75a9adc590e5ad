[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "raftcore"
version = "0.1.0"
description = "The replicated log at the heart of the Raft consensus algorithm: unstable entries, commit and apply tracking, and storage access."
requires-python = ">=3.10"
dependencies = []
keywords = ["raft", "consensus", "replicated log", "distributed systems"]
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
    "Topic :: System :: Distributed Computing",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["raftcore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
