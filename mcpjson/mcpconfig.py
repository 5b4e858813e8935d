"""MCP configuration files and their construction from profiles."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from .config import DEFAULT_DIR_PERM
from .errors import file_error, general_error

_STRING = r'"(?:\\.|[^"\\])*"'
_COMMENTS = re.compile(rf"({_STRING})|//[^\n]*|/\*.*?\*/", re.DOTALL)
_TRAILING_COMMAS = re.compile(rf"({_STRING})|,(\s*[}}\]])")
_FRACTION = re.compile(r"\.(\d+)")
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_OPTIONAL_SERVER_KEYS = ("timeout", "envFile", "transportType")


def _strip_jsonc(text: str) -> str:
    without_comments = _COMMENTS.sub(
        lambda m: m.group(1) if m.group(1) is not None else " ", text
    )
    return _TRAILING_COMMAS.sub(
        lambda m: m.group(1) if m.group(1) is not None else m.group(2), without_comments
    )


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return _format_timestamp(value)
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"{type(value).__name__} は JSON に変換できません")


def load_json(path: str | Path) -> Any:
    """Read a JSON file that may hold comments and trailing commas."""
    text = Path(path).read_text(encoding="utf-8")
    return json.loads(_strip_jsonc(text))


def save_json(path: str | Path, data: Any) -> None:
    """Write ``data`` as indented JSON."""
    text = json.dumps(data, indent=2, ensure_ascii=False, default=_json_default)
    Path(path).write_text(text + "\n", encoding="utf-8")


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return _ZERO_TIME
    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


def _format_timestamp(value: datetime) -> str:
    text = value.isoformat()
    if value.utcoffset() is not None and not value.utcoffset():
        text = text.removesuffix("+00:00") + "Z"
    return text


@dataclass
class ServerOverrides:
    """Values that replace a template's settings for one server."""

    env: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ServerOverrides:
        return cls(env=dict((data or {}).get("env") or {}))

    def to_dict(self) -> dict[str, Any]:
        return {"env": dict(self.env)} if self.env else {}


@dataclass
class ServerRef:
    """A server of a profile, named and built from a template."""

    name: str
    template: str
    overrides: ServerOverrides = field(default_factory=ServerOverrides)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ServerRef:
        return cls(
            name=data.get("name", ""),
            template=data.get("template", ""),
            overrides=ServerOverrides.from_dict(data.get("overrides")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "template": self.template,
            "overrides": self.overrides.to_dict(),
        }


@dataclass
class ProfileData:
    """A named list of server references."""

    name: str
    description: str = ""
    created_at: datetime = _ZERO_TIME
    updated_at: datetime = _ZERO_TIME
    servers: list[ServerRef] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProfileData:
        return cls(
            name=data.get("name", ""),
            description=data.get("description") or "",
            created_at=_parse_timestamp(data.get("createdAt")),
            updated_at=_parse_timestamp(data.get("updatedAt")),
            servers=[ServerRef.from_dict(item) for item in data.get("servers") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "createdAt": _format_timestamp(self.created_at),
            "updatedAt": _format_timestamp(self.updated_at),
            "servers": [server.to_dict() for server in self.servers],
        }


class TemplateSource(Protocol):
    """Where server templates come from."""

    def load(self, name: str) -> Mapping[str, Any]:
        """Return the server configuration of the template ``name``."""
        ...

    def exists(self, name: str) -> bool:
        """Whether the template ``name`` exists."""
        ...

    def save_from_config(self, name: str, config: Mapping[str, Any]) -> None:
        """Store ``config`` as the template ``name``."""
        ...


def _as_mcp_config(data: Any) -> dict[str, Any]:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("MCP設定ファイルの形式が正しくありません")
    servers = data.get("mcpServers")
    if servers is None:
        data["mcpServers"] = {}
    elif not isinstance(servers, dict):
        raise ValueError("mcpServers の形式が正しくありません")
    return data


class MCPConfigManager:
    """Reads, writes and builds MCP configuration documents."""

    def load(self, mcp_config_path: str | Path) -> dict[str, Any]:
        """Read an MCP configuration; its ``mcpServers`` is always a dict."""
        try:
            return _as_mcp_config(load_json(mcp_config_path))
        except (OSError, ValueError) as exc:
            raise file_error("MCP設定ファイルの読み込みに失敗しました", exc) from exc

    def save(self, mcp_config: Mapping[str, Any] | None, target_path: str | Path) -> None:
        """Write an MCP configuration, creating its directory."""
        target = Path(target_path)
        try:
            target.parent.mkdir(mode=DEFAULT_DIR_PERM, parents=True, exist_ok=True)
        except OSError as exc:
            raise file_error("ディレクトリの作成に失敗しました", exc) from exc
        try:
            save_json(target, mcp_config)
        except (OSError, TypeError, ValueError) as exc:
            raise file_error("MCP設定ファイルの保存に失敗しました", exc) from exc

    def build_from_profile(
        self, profile: ProfileData, server_manager: TemplateSource
    ) -> dict[str, Any]:
        """Build an MCP configuration from a profile's servers and their templates."""
        servers: dict[str, Any] = {}
        for server_ref in profile.servers:
            try:
                template = server_manager.load(server_ref.template)
            except Exception as exc:
                raise general_error(
                    f"サーバーテンプレート '{server_ref.template}' の読み込みに失敗しました", exc
                ) from exc
            servers[server_ref.name] = self.create_mcp_server(template, server_ref)
        return {"mcpServers": servers}

    def create_mcp_server(
        self, template: Mapping[str, Any], server_ref: ServerRef
    ) -> dict[str, Any]:
        """One server entry from a template's configuration and the reference's overrides."""
        server: dict[str, Any] = {
            "command": template.get("command", ""),
            "args": list(template.get("args") or []),
            "env": {**(template.get("env") or {}), **server_ref.overrides.env},
        }
        for key in _OPTIONAL_SERVER_KEYS:
            if template.get(key) is not None:
                server[key] = template[key]
        return server