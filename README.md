# mcpjson

`mcpjson` is a library for keeping MCP server configurations (`.mcp.json`
files) in order. It stores reusable pieces as JSON files under
`~/.mcpconfig`:

- **profiles** (`~/.mcpconfig/profiles/<name>.jsonc`): named sets of
  references to server templates, each with optional environment overrides;
- **groups** (`~/.mcpconfig/groups/<name>.jsonc`): named lists of server
  template names that can be added to or removed from an MCP file together.

Stored files are written as indented JSON. On reading, `//` and `/* */`
comments and trailing commas are accepted.

## Installation

```
pip install .
```

## Configuration directories

```python
from pathlib import Path
from mcpjson.config import Config, MCPPathResolver

cfg = Config.from_home(Path.home())   # creates ~/.mcpconfig and its subdirectories
cfg.profile_path("work")              # ~/.mcpconfig/profiles/work.jsonc
cfg.server_path("github")             # ~/.mcpconfig/servers/github.jsonc
cfg.group_path("tools")               # ~/.mcpconfig/groups/tools.jsonc

resolver = MCPPathResolver()
resolver.default_path()               # ~/.mcp.json
resolver.preferred_path()             # ./.mcp.json
resolver.search_locations()           # the places searched, most preferred first
resolver.find_existing_path()         # first existing file among them, or None
```

`Config.from_home()` with no argument uses the user's home directory.

## MCP configuration files

`mcpjson.mcpconfig.MCPConfigManager` reads and writes MCP configuration
documents as plain dicts:

```python
from mcpjson.mcpconfig import MCPConfigManager

manager = MCPConfigManager()
config = manager.load("./.mcp.json")      # "mcpServers" is always a dict
manager.save(config, "out/.mcp.json")     # creates the directory if needed
```

`build_from_profile(profile, server_manager)` builds a document from a
profile: each server takes its template's `command`, `args`, `env` and, when
set, `timeout`, `envFile` and `transportType`, with the profile's
environment overrides laid over the template's environment.

`load_json(path)` and `save_json(path, data)` are the file helpers used
throughout the package.

## Profiles

```python
from mcpjson.profile import ProfileManager

profiles = ProfileManager(cfg.profiles_dir)
profiles.create("work", "Servers for work")
profiles.add_server("work", "github", "gh", {"GITHUB_TOKEN": "token"})
profiles.remove_server("work", "gh")
profiles.copy("work", "work-backup", False)
profiles.rename("work-backup", "old-work", False)
profiles.merge("everything", ["work", "home"], False)   # first server of a name wins
profiles.list(True)
profiles.delete("old-work", True)
```

`ProfileManager.save(name, mcp_config_path, server_manager, force)`
captures the servers of an existing MCP file as a profile, storing a server
template for each one that does not exist yet. `ProfileManager.apply(name,
target_path, server_manager)` writes the MCP file built from a profile.

`find_profiles_using_template`, `remove_template_references_from_profile`
and `remove_template_references_from_all_profiles` find and drop the servers
built from a given template.

## Groups

```python
from mcpjson.group import GroupManager

groups = GroupManager(cfg.groups_dir)
groups.create("tools", "Everyday tools", False)
groups.add_server("tools", "github", server_manager)
groups.show("tools")
groups.apply("tools", "./.mcp.json", server_manager)           # returns how many were added
groups.remove_from_mcp("tools", "./.mcp.json", server_manager)  # returns how many were removed
```

## Confirmation prompts

Deleting, resetting and replacing an existing group ask for confirmation
unless `force` is true. When standard input is not a terminal, the prompt
is treated as declined (`mcpjson.interaction.confirm` returns `False`).

## Errors

Operations raise exceptions with descriptive messages. `ProfileError` and
`GroupError` are raised for missing or conflicting profiles and groups.
Both derive from `mcpjson.errors.AppError`, which carries an `ErrorType`,
an optional cause and an exit code.

## What this package does not do

- It has no command-line program; it is used from Python code.
- It does not store server templates itself. Operations that need them take
  a `server_manager` object supplied by the caller: for profiles one that
  provides `load`, `exists` and `save_from_config`
  (`mcpjson.mcpconfig.TemplateSource`), for groups one that provides
  `exists`, `add_to_mcp_config` and `remove_from_mcp_config`
  (`mcpjson.group.ServerRegistry`).

## Running the tests

```
pip install .[test]
pytest
```