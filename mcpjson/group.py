"""Server groups: named lists of server templates applied together."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from .config import DEFAULT_DIR_PERM, FILE_EXTENSION
from .errors import AppError, ErrorType
from .interaction import confirm, confirm_overwrite
from .mcpconfig import _format_timestamp, _parse_timestamp, load_json, save_json

__all__ = ["Group", "GroupError", "GroupManager", "ServerRegistry"]


class GroupError(AppError):
    """A group operation that could not be carried out."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message, error_type=ErrorType.GENERAL, cause=cause, code=1)


class ServerRegistry(Protocol):
    """The server templates a group refers to and their MCP configuration entries."""

    def exists(self, name: str) -> bool:
        """Whether the template ``name`` exists."""
        ...

    def add_to_mcp_config(
        self,
        mcp_config_path: str | Path,
        server_name: str,
        as_name: str,
        env_overrides: Mapping[str, str] | None,
    ) -> None:
        """Add the template ``server_name`` to an MCP configuration file."""
        ...

    def remove_from_mcp_config(self, mcp_config_path: str | Path, server_name: str) -> None:
        """Remove the server ``server_name`` from an MCP configuration file."""
        ...


def _now() -> datetime:
    return datetime.now().astimezone()


def _rfc3339(value: datetime) -> str:
    text = value.replace(microsecond=0).isoformat()
    offset = value.utcoffset()
    if offset is not None and not offset:
        text = text.removesuffix("+00:00") + "Z"
    return text


@dataclass
class Group:
    """A named list of server template names."""

    name: str
    description: str | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    servers: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Group:
        return cls(
            name=data.get("name", ""),
            description=data.get("description"),
            created_at=_parse_timestamp(data.get("createdAt")),
            updated_at=_parse_timestamp(data.get("updatedAt")),
            servers=[str(name) for name in data.get("servers") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "createdAt": _format_timestamp(self.created_at),
            "updatedAt": _format_timestamp(self.updated_at),
            "servers": list(self.servers),
        }


def _not_found(name: str) -> GroupError:
    return GroupError(f"グループ '{name}' が見つかりません")


class GroupManager:
    """Creates, edits and applies groups kept in one directory."""

    def __init__(self, groups_dir: str | Path) -> None:
        self.groups_dir = Path(groups_dir)

    # -- storage -----------------------------------------------------------

    def _path(self, name: str) -> Path:
        return self.groups_dir / f"{name}{FILE_EXTENSION}"

    def _exists(self, name: str) -> bool:
        return self._path(name).exists()

    def _save(self, group: Group) -> None:
        try:
            self.groups_dir.mkdir(mode=DEFAULT_DIR_PERM, parents=True, exist_ok=True)
        except OSError as exc:
            raise GroupError("グループディレクトリの作成に失敗しました", exc) from exc
        try:
            save_json(self._path(group.name), group.to_dict())
        except (OSError, TypeError, ValueError) as exc:
            raise GroupError("グループの保存に失敗しました", exc) from exc

    @staticmethod
    def _read(path: Path) -> Group:
        data = load_json(path)
        if not isinstance(data, dict):
            raise ValueError("グループの形式が正しくありません")
        return Group.from_dict(data)

    def _group_files(self) -> list[str]:
        try:
            return sorted(
                entry.name
                for entry in self.groups_dir.iterdir()
                if entry.name.endswith(FILE_EXTENSION)
            )
        except OSError as exc:
            raise GroupError("グループディレクトリの読み込みに失敗しました", exc) from exc

    def load(self, name: str) -> Group:
        """Read the group ``name``."""
        try:
            return self._read(self._path(name))
        except FileNotFoundError as exc:
            raise _not_found(name) from exc
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            raise GroupError("グループの読み込みに失敗しました", exc) from exc

    # -- creation and listing ---------------------------------------------

    def create(self, name: str, description: str = "", force: bool = False) -> None:
        """Create an empty group, asking before replacing an existing one unless ``force``."""
        if not force and self._exists(name) and not confirm_overwrite("グループ", name):
            raise GroupError("上書きをキャンセルしました")
        now = _now()
        group = Group(
            name=name,
            description=description or None,
            created_at=now,
            updated_at=now,
        )
        self._save(group)
        print(f"グループ '{name}' を作成しました")

    def list(self, detail: bool = False) -> None:
        """Print the stored groups, briefly or in detail."""
        if not self.groups_dir.exists():
            print("グループが存在しません")
            return
        files = self._group_files()
        if not files:
            print("グループが存在しません")
            return
        if detail:
            self._print_detailed_list(files)
        else:
            self._print_simple_list(files)

    def _print_simple_list(self, files: list[str]) -> None:
        print(f"{'グループ名':<20} {'作成日時':<20} サーバー数")
        print(f"{'-' * 20:<20} {'-' * 20:<20} {'-' * 8}")
        for file_name in files:
            try:
                group = self._read(self.groups_dir / file_name)
            except (OSError, ValueError, TypeError, AttributeError):
                print(f"{'エラー':<20} {'-':<20} -")
                continue
            print(f"{group.name:<20} {_rfc3339(group.created_at):<20} {len(group.servers)}")

    def _print_detailed_list(self, files: list[str]) -> None:
        for position, file_name in enumerate(files):
            if position:
                print()
            try:
                group = self._read(self.groups_dir / file_name)
            except (OSError, ValueError, TypeError, AttributeError):
                print(f"グループ: {file_name.removesuffix(FILE_EXTENSION)} (読み込みエラー)")
                continue
            self._print_group(group)

    @staticmethod
    def _print_group(group: Group) -> None:
        print(f"グループ名: {group.name}")
        if group.description is not None:
            print(f"説明: {group.description}")
        print(f"作成日時: {_rfc3339(group.created_at)}")
        print(f"更新日時: {_rfc3339(group.updated_at)}")
        print(f"サーバー数: {len(group.servers)}")
        if group.servers:
            print("サーバー:")
            for server_name in group.servers:
                print(f"  - {server_name}")

    def show(self, name: str) -> None:
        """Print the details of the group ``name``."""
        self._print_group(self.load(name))

    # -- maintenance -------------------------------------------------------

    def delete(self, name: str, force: bool = False) -> None:
        """Delete the group ``name``, asking first unless ``force``."""
        path = self._path(name)
        if not path.exists():
            raise _not_found(name)
        if not force and not confirm(f"グループ '{name}' を削除しますか？"):
            print("削除をキャンセルしました")
            return
        try:
            path.unlink()
        except OSError as exc:
            raise GroupError("グループの削除に失敗しました", exc) from exc
        print(f"グループ '{name}' を削除しました")

    def rename(self, old_name: str, new_name: str, force: bool = False) -> None:
        """Give the group ``old_name`` the name ``new_name``."""
        old_path = self._path(old_name)
        if not old_path.exists():
            raise _not_found(old_name)
        if self._exists(new_name) and not force:
            raise GroupError(
                f"グループ '{new_name}' は既に存在します\n"
                "別の名前を指定するか、--force オプションで上書きしてください"
            )
        group = self.load(old_name)
        group.name = new_name
        group.updated_at = _now()
        self._save(group)
        try:
            old_path.unlink()
        except OSError as exc:
            raise GroupError("古いグループファイルの削除に失敗しました", exc) from exc
        print(f"グループ '{old_name}' を '{new_name}' に変更しました")

    def add_server(
        self, group_name: str, server_name: str, server_manager: ServerRegistry
    ) -> None:
        """Append an existing server template to the group."""
        try:
            exists = server_manager.exists(server_name)
        except Exception as exc:
            raise GroupError("サーバー存在確認に失敗しました", exc) from exc
        if not exists:
            raise GroupError(f"サーバーテンプレート '{server_name}' が見つかりません")
        group = self.load(group_name)
        if server_name in group.servers:
            raise GroupError(
                f"サーバー '{server_name}' は既にグループ '{group_name}' に含まれています"
            )
        group.servers.append(server_name)
        group.updated_at = _now()
        self._save(group)
        print(f"サーバー '{server_name}' をグループ '{group_name}' に追加しました")

    def remove_server(self, group_name: str, server_name: str) -> None:
        """Remove a server template from the group."""
        group = self.load(group_name)
        if server_name not in group.servers:
            raise GroupError(
                f"サーバー '{server_name}' はグループ '{group_name}' に含まれていません"
            )
        group.servers.remove(server_name)
        group.updated_at = _now()
        self._save(group)
        print(f"サーバー '{server_name}' をグループ '{group_name}' から削除しました")

    def reset(self, force: bool = False) -> None:
        """Delete every group, asking first unless ``force``."""
        if not self.groups_dir.exists():
            print("グループディレクトリが存在しません")
            return
        files = self._group_files()
        if not files:
            print("削除するグループが存在しません")
            return
        if not force:
            print(f"以下の{len(files)}個のグループを削除します:")
            for file_name in files:
                print(f"  - {file_name.removesuffix(FILE_EXTENSION)}")
            print()
            if not confirm("すべてのグループを削除しますか？"):
                print("リセットをキャンセルしました")
                return
        deleted = 0
        for file_name in files:
            try:
                (self.groups_dir / file_name).unlink()
            except OSError as exc:
                print(f"警告: {file_name} の削除に失敗しました: {exc}")
            else:
                deleted += 1
        print(f"グループを{deleted}個削除しました")

    # -- MCP configuration -------------------------------------------------

    def apply(
        self, group_name: str, mcp_config_path: str | Path, server_manager: ServerRegistry
    ) -> int:
        """Add every server of the group to an MCP configuration; return how many were added."""
        group = self.load(group_name)
        if not group.servers:
            print(f"グループ '{group_name}' にはサーバーが含まれていません")
            return 0
        added = 0
        for server_name in group.servers:
            try:
                server_manager.add_to_mcp_config(mcp_config_path, server_name, "", None)
            except Exception as exc:
                print(f"警告: サーバー '{server_name}' の追加に失敗しました: {exc}")
            else:
                added += 1
        print(
            f"グループ '{group_name}' から {added}/{len(group.servers)} "
            f"のサーバーをMCP設定ファイルに追加しました: {mcp_config_path}"
        )
        return added

    def remove_from_mcp(
        self, group_name: str, mcp_config_path: str | Path, server_manager: ServerRegistry
    ) -> int:
        """Remove every server of the group from an MCP configuration; return how many went."""
        group = self.load(group_name)
        if not group.servers:
            print(f"グループ '{group_name}' にはサーバーが含まれていません")
            return 0
        removed = 0
        for server_name in group.servers:
            try:
                server_manager.remove_from_mcp_config(mcp_config_path, server_name)
            except Exception as exc:
                print(f"警告: サーバー '{server_name}' の削除に失敗しました: {exc}")
            else:
                removed += 1
        print(
            f"グループ '{group_name}' から {removed}/{len(group.servers)} "
            f"のサーバーをMCP設定ファイルから削除しました: {mcp_config_path}"
        )
        return removed