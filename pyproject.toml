[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mcpjson"
version = "0.1.0"
description = "Manage MCP server configuration files through reusable profiles and groups of server templates"
requires-python = ">=3.10"
dependencies = []
keywords = ["mcp", "configuration", "profiles", "json", "jsonc"]
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
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["mcpjson"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
