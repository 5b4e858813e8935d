"""Locations of the configuration store and of MCP configuration files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .errors import config_error

CONFIG_DIR_NAME = ".mcpconfig"
PROFILES_DIR = "profiles"
SERVERS_DIR = "servers"
GROUPS_DIR = "groups"
DEFAULT_MCP_CONFIG = ".mcp.json"
DEFAULT_DIR_PERM = 0o755
FILE_EXTENSION = ".jsonc"
DEFAULT_PROFILE_NAME = "default"


def _home() -> Path | None:
    try:
        return Path.home()
    except (RuntimeError, KeyError):
        return None


def _entry_path(directory: Path, name: str) -> Path:
    return Path(directory) / f"{name}{FILE_EXTENSION}"


@dataclass(frozen=True)
class Config:
    """Directories that hold profiles, server templates and groups."""

    base_dir: Path
    profiles_dir: Path
    servers_dir: Path
    groups_dir: Path

    @classmethod
    def from_home(cls, home: str | Path | None = None) -> Config:
        """Build the store below ``home`` (the user's home by default) and create it."""
        if home is None:
            try:
                home = Path.home()
            except (RuntimeError, KeyError) as exc:
                raise config_error("ホームディレクトリの取得に失敗しました", exc) from exc
        base = Path(home) / CONFIG_DIR_NAME
        cfg = cls(
            base_dir=base,
            profiles_dir=base / PROFILES_DIR,
            servers_dir=base / SERVERS_DIR,
            groups_dir=base / GROUPS_DIR,
        )
        cfg.ensure_directories()
        return cfg

    def ensure_directories(self) -> None:
        """Create every directory of the store that does not exist yet."""
        for directory in (self.base_dir, self.profiles_dir, self.servers_dir, self.groups_dir):
            try:
                Path(directory).mkdir(mode=DEFAULT_DIR_PERM, parents=True, exist_ok=True)
            except OSError as exc:
                raise config_error(f"ディレクトリの作成に失敗しました {directory}", exc) from exc

    def profile_path(self, name: str) -> Path:
        return _entry_path(self.profiles_dir, name)

    def server_path(self, name: str) -> Path:
        return _entry_path(self.servers_dir, name)

    def group_path(self, name: str) -> Path:
        return _entry_path(self.groups_dir, name)


class MCPPathResolver:
    """Resolves where MCP configuration files live."""

    def default_path(self) -> Path:
        """The MCP configuration file in the home directory."""
        home = _home()
        if home is None:
            return Path(DEFAULT_MCP_CONFIG)
        return home / DEFAULT_MCP_CONFIG

    def find_existing_path(self) -> Path | None:
        """The first existing MCP configuration file among the usual places."""
        return next((path for path in self.search_locations() if path.exists()), None)

    def preferred_path(self) -> Path:
        """The MCP configuration file in the current directory."""
        return Path("./.mcp.json")

    def search_locations(self) -> list[Path]:
        """The usual places of an MCP configuration file, most preferred first."""
        local = [Path(".claude/mcp.json"), Path("mcp.json")]
        home = _home()
        if home is None:
            return local
        return [
            home / DEFAULT_MCP_CONFIG,
            home / ".config" / "claude" / "mcp.json",
            home / ".config" / "mcp.json",
            home / ".claude" / "mcp.json",
            *local,
        ]


def get_default_mcp_config_path() -> Path:
    return MCPPathResolver().default_path()


def find_mcp_config_path() -> Path | None:
    return MCPPathResolver().find_existing_path()


def get_default_mcp_path() -> Path:
    return MCPPathResolver().preferred_path()