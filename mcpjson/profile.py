"""Profiles: named sets of servers built from server templates."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from .config import FILE_EXTENSION
from .errors import AppError, ErrorType
from .interaction import confirm
from .mcpconfig import (
    MCPConfigManager,
    ProfileData,
    ServerOverrides,
    ServerRef,
    TemplateSource,
    load_json,
    save_json,
)

LIST_COLUMN_WIDTH = 20
DATE_COLUMN_WIDTH = 20
TABLE_SEPARATOR_CHAR = "-"
TABLE_SEPARATOR_WIDTH = 60

_SERVER_KEYS = ("command", "args", "env", "timeout", "envFile", "transportType")

__all__ = [
    "Profile",
    "ProfileError",
    "ProfileManager",
    "ServerOverrides",
    "ServerRef",
]


class ProfileError(AppError):
    """A profile operation that could not be carried out."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message, error_type=ErrorType.GENERAL, cause=cause, code=1)


class Profile(ProfileData):
    """A stored profile."""


def _now() -> datetime:
    return datetime.now().astimezone()


def _rfc3339(value: datetime) -> str:
    text = value.replace(microsecond=0).isoformat()
    offset = value.utcoffset()
    if offset is not None and not offset:
        text = text.removesuffix("+00:00") + "Z"
    return text


def _exists_message(name: str) -> str:
    return (
        f"プロファイル '{name}' は既に存在します。"
        "別の名前を指定するか、--force オプションで上書きしてください"
    )


def _not_found(name: str) -> ProfileError:
    return ProfileError(f"プロファイル '{name}' が見つかりません")


class ProfileManager:
    """Creates, stores and applies profiles kept in one directory."""

    def __init__(self, profiles_dir: str | Path) -> None:
        self.profiles_dir = Path(profiles_dir)

    # -- storage -----------------------------------------------------------

    def _path(self, name: str) -> Path:
        return self.profiles_dir / f"{name}{FILE_EXTENSION}"

    def _save_profile(self, profile: ProfileData) -> None:
        path = self._path(profile.name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            save_json(path, profile.to_dict())
        except (OSError, TypeError, ValueError) as exc:
            raise ProfileError("プロファイルの保存に失敗しました", exc) from exc

    def _profile_files(self) -> list[str]:
        return sorted(
            entry.name
            for entry in self.profiles_dir.iterdir()
            if entry.name.endswith(FILE_EXTENSION)
        )

    def _read_dir(self) -> list[Path]:
        try:
            return sorted(self.profiles_dir.iterdir(), key=lambda entry: entry.name)
        except OSError as exc:
            raise ProfileError("プロファイルディレクトリの読み込みに失敗しました", exc) from exc

    def load(self, name: str) -> Profile:
        """Read the profile ``name``."""
        try:
            data = load_json(self._path(name))
        except FileNotFoundError as exc:
            raise _not_found(name) from exc
        except (OSError, ValueError) as exc:
            raise ProfileError("プロファイルの読み込みに失敗しました", exc) from exc
        if not isinstance(data, dict):
            raise ProfileError(
                "プロファイルの読み込みに失敗しました",
                ValueError("プロファイルの形式が正しくありません"),
            )
        try:
            return Profile.from_dict(data)
        except (TypeError, ValueError, AttributeError) as exc:
            raise ProfileError("プロファイルの読み込みに失敗しました", exc) from exc

    def profile_path(self, name: str) -> Path:
        """The file of the existing profile ``name``."""
        path = self._path(name)
        if not path.exists():
            raise _not_found(name)
        return path

    # -- creation ----------------------------------------------------------

    def create(self, name: str, description: str) -> None:
        """Create an empty profile; it must not exist yet."""
        if self._path(name).exists():
            raise ProfileError(f"プロファイル '{name}' は既に存在します")
        now = _now()
        self._save_profile(
            Profile(name=name, description=description, created_at=now, updated_at=now)
        )

    def save(
        self,
        name: str,
        mcp_config_path: str | Path,
        server_manager: TemplateSource,
        force: bool = False,
    ) -> None:
        """Store the servers of an MCP configuration file as the profile ``name``."""
        if self._path(name).exists() and not force:
            raise ProfileError(
                f"プロファイル '{name}' は既に存在します。--force オプションで上書きしてください"
            )
        profile = self._build_from_mcp(name, mcp_config_path, server_manager)
        self._save_profile(profile)
        print(f"プロファイル '{name}' を保存しました ({len(profile.servers)}個のサーバー)")

    def _build_from_mcp(
        self, name: str, mcp_config_path: str | Path, server_manager: TemplateSource
    ) -> Profile:
        try:
            mcp_config = MCPConfigManager().load(mcp_config_path)
        except AppError as exc:
            raise ProfileError("MCP設定の読み込みに失敗", exc) from exc
        now = _now()
        profile = Profile(
            name=name,
            description=f"{mcp_config_path} から保存",
            created_at=now,
            updated_at=now,
        )
        try:
            for server_name, mcp_server in mcp_config["mcpServers"].items():
                self._ensure_server_template(server_name, mcp_server, server_manager)
                profile.servers.append(ServerRef(name=server_name, template=server_name))
        except Exception as exc:
            raise ProfileError("サーバー処理に失敗", exc) from exc
        return profile

    @staticmethod
    def _ensure_server_template(
        template_name: str, mcp_server: Mapping[str, Any], server_manager: TemplateSource
    ) -> None:
        if server_manager.exists(template_name):
            print(
                f"サーバーテンプレート '{template_name}' は既に存在するため、既存のものを使用します"
            )
            return
        server_config = {key: mcp_server.get(key) for key in _SERVER_KEYS}
        server_config["command"] = server_config["command"] or ""
        server_manager.save_from_config(template_name, server_config)
        print(f"サーバーテンプレート '{template_name}' を作成しました")

    # -- applying and listing ---------------------------------------------

    def apply(
        self, name: str, target_path: str | Path, server_manager: TemplateSource
    ) -> None:
        """Write the MCP configuration built from the profile ``name`` to ``target_path``."""
        profile = self.load(name)
        mcp_manager = MCPConfigManager()
        mcp_config = mcp_manager.build_from_profile(profile, server_manager)
        mcp_manager.save(mcp_config, target_path)
        print(f"プロファイル '{name}' を適用しました")
        print(f"{len(profile.servers)}個のサーバー設定を '{target_path}' に保存")

    def list(self, detail: bool = False) -> None:
        """Print the stored profiles, briefly or in detail."""
        entries = self._read_dir()
        if not entries:
            print("プロファイルが存在しません")
            return
        names = [
            entry.name.removesuffix(FILE_EXTENSION)
            for entry in entries
            if entry.name.endswith(FILE_EXTENSION)
        ]
        if detail:
            self._list_detailed(names)
        else:
            self._list_summary(names)

    def _list_detailed(self, names: Iterable[str]) -> None:
        for name in names:
            try:
                profile = self.load(name)
            except ProfileError as exc:
                print(f"エラー: {name} の読み込みに失敗しました: {exc}")
                continue
            self._print_details(profile)

    def _list_summary(self, names: Iterable[str]) -> None:
        print(
            f"{'プロファイル名':<{LIST_COLUMN_WIDTH}} "
            f"{'作成日時':<{DATE_COLUMN_WIDTH}} サーバー数"
        )
        print(TABLE_SEPARATOR_CHAR * TABLE_SEPARATOR_WIDTH)
        for name in names:
            try:
                profile = self.load(name)
            except ProfileError:
                continue
            print(
                f"{profile.name:<{LIST_COLUMN_WIDTH}} "
                f"{_rfc3339(profile.created_at):<{DATE_COLUMN_WIDTH}} "
                f"{len(profile.servers)}"
            )

    @staticmethod
    def _print_details(profile: Profile) -> None:
        print(f"\nプロファイル: {profile.name}")
        print(f"  説明: {profile.description}")
        print(f"  作成日時: {_rfc3339(profile.created_at)}")
        print(f"  更新日時: {_rfc3339(profile.updated_at)}")
        print(f"  サーバー数: {len(profile.servers)}")
        if profile.servers:
            print("  サーバー:")
            for server in profile.servers:
                print(f"    - {server.name} (テンプレート: {server.template})")

    # -- maintenance -------------------------------------------------------

    def delete(self, name: str, force: bool = False) -> None:
        """Delete the profile ``name``, asking first unless ``force``."""
        path = self._path(name)
        if not path.exists():
            raise _not_found(name)
        if not force and not confirm(f"プロファイル '{name}' を削除しますか？"):
            print("削除をキャンセルしました")
            return
        try:
            path.unlink()
        except OSError as exc:
            raise ProfileError("プロファイルの削除に失敗しました", exc) from exc
        print(f"プロファイル '{name}' を削除しました")

    def rename(self, old_name: str, new_name: str, force: bool = False) -> None:
        """Give the profile ``old_name`` the name ``new_name``."""
        old_path = self._path(old_name)
        if not old_path.exists():
            raise _not_found(old_name)
        if self._path(new_name).exists() and not force:
            raise ProfileError(_exists_message(new_name))
        profile = self.load(old_name)
        profile.name = new_name
        profile.updated_at = _now()
        self._save_profile(profile)
        try:
            old_path.unlink()
        except OSError as exc:
            raise ProfileError("古いプロファイルの削除に失敗しました", exc) from exc
        print(f"プロファイル '{old_name}' を '{new_name}' に変更しました")

    def copy(self, source_name: str, dest_name: str, force: bool = False) -> None:
        """Duplicate the profile ``source_name`` as ``dest_name``."""
        if not self._path(source_name).exists():
            raise _not_found(source_name)
        if self._path(dest_name).exists() and not force:
            raise ProfileError(_exists_message(dest_name))
        profile = self.load(source_name)
        now = _now()
        profile.name = dest_name
        profile.created_at = now
        profile.updated_at = now
        self._save_profile(profile)
        print(f"プロファイル '{source_name}' を '{dest_name}' にコピーしました")

    def merge(self, dest_name: str, source_names: list[str], force: bool = False) -> None:
        """Combine profiles into ``dest_name``; the first server of a name wins."""
        if self._path(dest_name).exists() and not force:
            raise ProfileError(_exists_message(dest_name))
        now = _now()
        merged = Profile(
            name=dest_name,
            description=f"{len(source_names)}個のプロファイルを合成",
            created_at=now,
            updated_at=now,
        )
        seen: set[str] = set()
        for source_name in source_names:
            try:
                source = self.load(source_name)
            except ProfileError as exc:
                raise ProfileError(
                    f"プロファイル '{source_name}' の読み込みに失敗しました", exc
                ) from exc
            for server in source.servers:
                if server.name in seen:
                    print(
                        f"警告: サーバー '{server.name}' は既に追加されているため、"
                        f"スキップします（プロファイル: {source_name}）"
                    )
                    continue
                seen.add(server.name)
                merged.servers.append(server)
        self._save_profile(merged)
        print(f"プロファイル '{dest_name}' を作成しました（{len(merged.servers)}個のサーバー）")
        print(f"合成元: [{' '.join(source_names)}]")

    def add_server(
        self,
        profile_name: str,
        template_name: str,
        server_name: str | None = None,
        env_overrides: Mapping[str, str] | None = None,
    ) -> None:
        """Add a server built from ``template_name``; its name defaults to the template's."""
        profile = self.load(profile_name)
        server_name = server_name or template_name
        if any(server.name == server_name for server in profile.servers):
            raise ProfileError(
                f"サーバー名 '{server_name}' は既にプロファイル '{profile_name}' に存在します。"
                "別の名前を指定してください（--as オプションを使用）"
            )
        server = ServerRef(name=server_name, template=template_name)
        if env_overrides:
            server.overrides = ServerOverrides(env=dict(env_overrides))
        profile.servers.append(server)
        profile.updated_at = _now()
        self._save_profile(profile)
        print(f"サーバー '{server_name}' をプロファイル '{profile_name}' に追加しました")

    def remove_server(self, profile_name: str, server_name: str) -> None:
        """Remove every server named ``server_name`` from the profile."""
        profile = self.load(profile_name)
        kept = [server for server in profile.servers if server.name != server_name]
        if len(kept) == len(profile.servers):
            raise ProfileError(
                f"サーバー '{server_name}' がプロファイル '{profile_name}' に見つかりません"
            )
        profile.servers = kept
        profile.updated_at = _now()
        self._save_profile(profile)
        print(f"サーバー '{server_name}' をプロファイル '{profile_name}' から削除しました")

    def reset(self, force: bool = False) -> None:
        """Delete every profile, asking first unless ``force``."""
        if not self.profiles_dir.exists():
            print("プロファイルディレクトリが存在しません")
            return
        try:
            files = self._profile_files()
        except OSError as exc:
            raise ProfileError("プロファイルディレクトリの読み込みに失敗しました", exc) from exc
        if not files:
            print("削除するプロファイルが存在しません")
            return
        if not force:
            print(f"以下の{len(files)}個のプロファイルを削除します:")
            for file_name in files:
                print(f"  - {file_name.removesuffix(FILE_EXTENSION)}")
            print()
            if not confirm("すべてのプロファイルを削除しますか？"):
                print("リセットをキャンセルしました")
                return
        deleted = 0
        for file_name in files:
            try:
                (self.profiles_dir / file_name).unlink()
            except OSError as exc:
                print(f"警告: {file_name} の削除に失敗しました: {exc}")
            else:
                deleted += 1
        print(f"プロファイルを{deleted}個削除しました")

    # -- template references -----------------------------------------------

    def find_profiles_using_template(self, template_name: str) -> list[str]:
        """Names of the profiles with a server built from ``template_name``."""
        entries = self._read_dir()
        using: list[str] = []
        for entry in entries:
            if not entry.name.endswith(FILE_EXTENSION):
                continue
            name = entry.name.removesuffix(FILE_EXTENSION)
            try:
                profile = self.load(name)
            except ProfileError:
                continue
            if any(server.template == template_name for server in profile.servers):
                using.append(name)
        return using

    def remove_template_references_from_profile(
        self, profile_name: str, template_name: str
    ) -> int:
        """Drop the servers built from ``template_name``; return how many went."""
        profile = self.load(profile_name)
        kept = [server for server in profile.servers if server.template != template_name]
        removed = len(profile.servers) - len(kept)
        if removed == 0:
            return 0
        profile.servers = kept
        profile.updated_at = _now()
        self._save_profile(profile)
        print(
            f"プロファイル '{profile_name}' からサーバーテンプレート "
            f"'{template_name}' の参照を{removed}個削除しました"
        )
        return removed

    def remove_template_references_from_all_profiles(self, template_name: str) -> int:
        """Drop ``template_name`` from every profile; return how many profiles changed."""
        changed = 0
        for profile_name in self.find_profiles_using_template(template_name):
            try:
                self.remove_template_references_from_profile(profile_name, template_name)
            except ProfileError as exc:
                print(f"警告: プロファイル '{profile_name}' からの参照削除に失敗しました: {exc}")
            else:
                changed += 1
        if changed:
            print(
                f"合計{changed}個のプロファイルからサーバーテンプレート "
                f"'{template_name}' の参照を削除しました"
            )
        return changed