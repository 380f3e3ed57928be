[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lunomcp"
version = "0.1.0"
description = "Model Context Protocol server exposing Luno exchange balances, markets, orders and transactions as tools and resources"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "mcp",
    "model-context-protocol",
    "luno",
    "cryptocurrency",
    "exchange",
    "trading",
    "json-rpc",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lunomcp"]

[tool.hatch.build.targets.sdist]
include = ["lunomcp", "tests", "README.md"]

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
warn_redundant_casts = true
