import io
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from mcpjson.profile import Profile, ProfileError, ProfileManager, ServerRef


class FakeTemplates:
    def __init__(self):
        self.store = {}

    def load(self, name):
        if name not in self.store:
            raise KeyError(name)
        return self.store[name]

    def exists(self, name):
        return name in self.store

    def save_from_config(self, name, config):
        self.store[name] = dict(config)


def write_profile(path, name, servers, description="テスト用"):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "name": name,
        "description": description,
        "createdAt": "2024-01-02T03:04:05.123456789+09:00",
        "updatedAt": "2024-01-02T03:04:05Z",
        "servers": [{"name": n, "template": t} for n, t in servers],
    }
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def write_mcp(path, servers):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"mcpServers": servers}), encoding="utf-8")


@pytest.fixture
def no_tty(monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO("y\n"))


def test_create_and_duplicate(tmp_path):
    manager = ProfileManager(tmp_path)
    manager.create("test-profile", "テスト用プロファイル")
    assert (tmp_path / "test-profile.jsonc").exists()
    with pytest.raises(ProfileError, match="は既に存在します"):
        manager.create("test-profile", "重複テスト")


def test_load_existing_and_missing(tmp_path):
    write_profile(tmp_path / "test-profile.jsonc", "test-profile", [("s", "t")])
    manager = ProfileManager(tmp_path)
    profile = manager.load("test-profile")
    assert profile.name == "test-profile"
    assert profile.servers == [ServerRef(name="s", template="t")]
    assert profile.created_at.year == 2024
    with pytest.raises(ProfileError, match="'nonexistent' が見つかりません"):
        manager.load("nonexistent")


def test_load_invalid_json(tmp_path):
    (tmp_path / "bad.jsonc").write_text("not json", encoding="utf-8")
    with pytest.raises(ProfileError, match="プロファイルの読み込みに失敗しました"):
        ProfileManager(tmp_path).load("bad")


def test_delete_force_and_missing(tmp_path):
    manager = ProfileManager(tmp_path)
    manager.create("test-profile", "テスト用")
    manager.delete("test-profile", True)
    assert not (tmp_path / "test-profile.jsonc").exists()
    with pytest.raises(ProfileError):
        manager.delete("nonexistent", True)


def test_delete_without_force_non_interactive_keeps_file(tmp_path, no_tty, capsys):
    manager = ProfileManager(tmp_path)
    manager.create("keep", "x")
    manager.delete("keep", False)
    assert (tmp_path / "keep.jsonc").exists()
    assert "削除をキャンセルしました" in capsys.readouterr().out


def test_add_server(tmp_path):
    manager = ProfileManager(tmp_path)
    manager.create("test-profile", "テスト用")
    manager.add_server("test-profile", "test-template", "test-server", {"ENV_VAR": "value"})
    profile = manager.load("test-profile")
    assert len(profile.servers) == 1
    assert profile.servers[0].name == "test-server"
    assert profile.servers[0].template == "test-template"
    assert profile.servers[0].overrides.env == {"ENV_VAR": "value"}
    with pytest.raises(ProfileError):
        manager.add_server("nonexistent", "test-template", "test-server", None)


def test_add_server_duplicate(tmp_path):
    manager = ProfileManager(tmp_path)
    manager.create("test-profile", "テスト用")
    manager.add_server("test-profile", "test-template", "duplicate-server", None)
    with pytest.raises(ProfileError, match="既にプロファイル"):
        manager.add_server("test-profile", "test-template", "duplicate-server", None)


def test_add_server_empty_name_uses_template(tmp_path):
    manager = ProfileManager(tmp_path)
    manager.create("test-profile", "テスト用")
    manager.add_server("test-profile", "template-name", "", None)
    profile = manager.load("test-profile")
    assert [s.name for s in profile.servers] == ["template-name"]


def test_remove_server(tmp_path):
    manager = ProfileManager(tmp_path)
    manager.create("test-profile", "テスト用")
    manager.add_server("test-profile", "test-template", "test-server", None)
    manager.remove_server("test-profile", "test-server")
    assert manager.load("test-profile").servers == []
    with pytest.raises(ProfileError, match="見つかりません"):
        manager.remove_server("test-profile", "nonexistent-server")


@pytest.mark.parametrize("names", [["profile1", "profile2", "profile3"], ["single-profile"]])
def test_reset_deletes_profiles(tmp_path, names, capsys):
    manager = ProfileManager(tmp_path)
    for name in names:
        manager.create(name, "テスト用プロファイル")
    manager.reset(True)
    assert not any((tmp_path / f"{n}.jsonc").exists() for n in names)
    assert f"プロファイルを{len(names)}個削除しました" in capsys.readouterr().out


def test_reset_empty_and_nonexistent(tmp_path, capsys):
    ProfileManager(tmp_path).reset(True)
    assert "削除するプロファイルが存在しません" in capsys.readouterr().out
    ProfileManager(tmp_path / "nonexistent-dir").reset(True)
    assert "プロファイルディレクトリが存在しません" in capsys.readouterr().out


def test_reset_without_force_non_interactive_cancels(tmp_path, no_tty, capsys):
    manager = ProfileManager(tmp_path)
    manager.create("a", "x")
    manager.reset(False)
    assert (tmp_path / "a.jsonc").exists()
    assert "リセットをキャンセルしました" in capsys.readouterr().out


def test_rename_success(tmp_path):
    manager = ProfileManager(tmp_path)
    manager.create("old-profile", "古いプロファイル")
    manager.rename("old-profile", "new-profile", False)
    assert (tmp_path / "new-profile.jsonc").exists()
    assert not (tmp_path / "old-profile.jsonc").exists()
    assert manager.load("new-profile").name == "new-profile"


def test_rename_nonexistent(tmp_path):
    with pytest.raises(ProfileError, match="見つかりません"):
        ProfileManager(tmp_path).rename("nonexistent-profile", "new-profile", False)


def test_rename_force_and_conflict(tmp_path):
    manager = ProfileManager(tmp_path)
    manager.create("old-profile", "古いプロファイル")
    manager.create("existing-new", "既存")
    with pytest.raises(ProfileError, match="は既に存在します"):
        manager.rename("old-profile", "existing-new", False)
    manager.rename("old-profile", "existing-new", True)
    assert not (tmp_path / "old-profile.jsonc").exists()
    loaded = manager.load("existing-new")
    assert loaded.name == "existing-new"
    assert loaded.description == "古いプロファイル"


def test_list_empty_and_entries(tmp_path, capsys):
    manager = ProfileManager(tmp_path)
    manager.list(False)
    assert "プロファイルが存在しません" in capsys.readouterr().out
    manager.create("profile1", "テスト用プロファイル")
    manager.create("profile2", "テスト用プロファイル")
    manager.list(False)
    out = capsys.readouterr().out
    assert "-" * 60 in out
    assert "profile1" in out and "profile2" in out


def test_list_detail(tmp_path, capsys):
    manager = ProfileManager(tmp_path)
    manager.create("detailed-profile", "テスト用プロファイル")
    manager.add_server("detailed-profile", "tmpl", "srv", None)
    manager.list(True)
    out = capsys.readouterr().out
    assert "プロファイル: detailed-profile" in out
    assert "    - srv (テンプレート: tmpl)" in out


def test_list_nonexistent_directory(tmp_path):
    with pytest.raises(ProfileError, match="プロファイルディレクトリの読み込みに失敗しました"):
        ProfileManager(tmp_path / "nonexistent" / "directory").list(False)


def _dirs(tmp_path):
    profiles = tmp_path / "profiles"
    profiles.mkdir()
    return ProfileManager(profiles), FakeTemplates()


def test_save_basic_flow(tmp_path):
    manager, templates = _dirs(tmp_path)
    mcp_path = tmp_path / "mcp_config.json"
    write_mcp(mcp_path, {
        "test-server": {"command": "python", "args": ["test.py"], "env": {"ENV_VAR": "test_value"}},
    })
    manager.save("test-profile", mcp_path, templates, False)
    profile = manager.load("test-profile")
    assert profile.name == "test-profile"
    assert [s.name for s in profile.servers] == ["test-server"]
    assert profile.servers[0].template == "test-server"
    assert templates.exists("test-server")
    assert templates.store["test-server"]["command"] == "python"
    assert templates.store["test-server"]["env"] == {"ENV_VAR": "test_value"}


def test_save_keeps_existing_template(tmp_path):
    manager, templates = _dirs(tmp_path)
    templates.save_from_config("srv", {"command": "original"})
    mcp_path = tmp_path / "mcp.json"
    write_mcp(mcp_path, {"srv": {"command": "new"}})
    manager.save("p", mcp_path, templates, False)
    assert templates.store["srv"]["command"] == "original"


def test_save_force_overwrite(tmp_path):
    manager, templates = _dirs(tmp_path)
    manager.create("existing-profile", "既存のプロファイル")
    mcp_path = tmp_path / "mcp_config.json"
    write_mcp(mcp_path, {"new-server": {"command": "node", "args": ["server.js"]}})
    manager.save("existing-profile", mcp_path, templates, True)
    assert [s.name for s in manager.load("existing-profile").servers] == ["new-server"]


def test_save_missing_mcp_config(tmp_path):
    manager, templates = _dirs(tmp_path)
    with pytest.raises(ProfileError, match="MCP設定の読み込みに失敗"):
        manager.save("test-profile", tmp_path / "nonexistent.json", templates, False)


def test_save_existing_without_force(tmp_path):
    manager, templates = _dirs(tmp_path)
    manager.create("existing-profile", "既存のプロファイル")
    mcp_path = tmp_path / "mcp_config.json"
    write_mcp(mcp_path, {})
    with pytest.raises(ProfileError, match="--force"):
        manager.save("existing-profile", mcp_path, templates, False)


def test_apply_basic_flow(tmp_path):
    manager, templates = _dirs(tmp_path)
    templates.save_from_config(
        "test-template", {"command": "python", "args": ["test.py"], "env": {"TEST_ENV": "value"}}
    )
    manager.create("test-profile", "テスト用プロファイル")
    manager.add_server("test-profile", "test-template", "test-server", None)
    target = tmp_path / "output_config.json"
    manager.apply("test-profile", target, templates)
    data = json.loads(target.read_text(encoding="utf-8"))
    assert list(data["mcpServers"]) == ["test-server"]
    server = data["mcpServers"]["test-server"]
    assert server["command"] == "python"
    assert server["args"] == ["test.py"]
    assert server["env"]["TEST_ENV"] == "value"


def test_apply_profile_not_found(tmp_path):
    manager, templates = _dirs(tmp_path)
    with pytest.raises(ProfileError, match="見つかりません"):
        manager.apply("nonexistent-profile", tmp_path / "out.json", templates)
    assert not (tmp_path / "out.json").exists()


@pytest.mark.parametrize(
    "source, dest, force, setup_source, setup_dest, error",
    [
        ("source-profile", "dest-profile", False, True, False, None),
        ("nonexistent", "dest-profile", False, False, False, "が見つかりません"),
        ("source-profile", "existing-dest", False, True, True, "は既に存在します"),
        ("source-profile", "existing-dest", True, True, True, None),
    ],
)
def test_copy(tmp_path, source, dest, force, setup_source, setup_dest, error):
    manager = ProfileManager(tmp_path)
    if setup_source:
        write_profile(tmp_path / f"{source}.jsonc", source, [("test-server", "test-template")])
    if setup_dest:
        write_profile(tmp_path / f"{dest}.jsonc", dest, [])
    if error:
        with pytest.raises(ProfileError, match=error):
            manager.copy(source, dest, force)
        return_value = None
        assert return_value is None or False
    else:
        manager.copy(source, dest, force)
        assert (tmp_path / f"{source}.jsonc").exists()
        copied = manager.load(dest)
        assert copied.name == dest
        assert [s.name for s in copied.servers] == ["test-server"]
        assert copied.created_at > datetime(2024, 1, 2, tzinfo=timezone.utc)
        assert manager.load(source).name == source


@pytest.mark.parametrize(
    "dest, sources, force, setup, setup_dest, error, expected",
    [
        ("merged-profile", ["source1", "source2"], False, [True, True], False, None, 4),
        ("merged-profile", ["source1"], False, [True], False, None, 2),
        ("merged-profile", ["nonexistent"], False, [False], False, "の読み込みに失敗しました", 0),
        ("existing-dest", ["source1"], False, [True], True, "は既に存在します", 0),
        ("existing-dest", ["source1"], True, [True], True, None, 2),
    ],
)
def test_merge(tmp_path, dest, sources, force, setup, setup_dest, error, expected):
    manager = ProfileManager(tmp_path)
    for name, create in zip(sources, setup):
        if create:
            write_profile(
                tmp_path / f"{name}.jsonc",
                name,
                [(f"{name}-server1", "template1"), (f"{name}-server2", "template2")],
            )
    if setup_dest:
        write_profile(tmp_path / f"{dest}.jsonc", dest, [])
    if error:
        with pytest.raises(ProfileError, match=error):
            manager.merge(dest, sources, force)
    else:
        manager.merge(dest, sources, force)
        merged = manager.load(dest)
        assert merged.name == dest
        assert len(merged.servers) == expected
        assert merged.description == f"{len(sources)}個のプロファイルを合成"


def test_merge_duplicate_servers_first_wins(tmp_path, capsys):
    manager = ProfileManager(tmp_path)
    write_profile(
        tmp_path / "profile1.jsonc", "profile1",
        [("common-server", "template1"), ("unique-server1", "template1")],
    )
    write_profile(
        tmp_path / "profile2.jsonc", "profile2",
        [("common-server", "template2"), ("unique-server2", "template2")],
    )
    manager.merge("merged", ["profile1", "profile2"], False)
    merged = manager.load("merged")
    assert [s.name for s in merged.servers] == ["common-server", "unique-server1", "unique-server2"]
    assert merged.servers[0].template == "template1"
    out = capsys.readouterr().out
    assert "合成元: [profile1 profile2]" in out


def test_profile_path(tmp_path):
    manager = ProfileManager(tmp_path)
    manager.create("p", "x")
    assert manager.profile_path("p") == tmp_path / "p.jsonc"
    with pytest.raises(ProfileError):
        manager.profile_path("missing")


def test_template_references(tmp_path):
    manager = ProfileManager(tmp_path)
    write_profile(tmp_path / "a.jsonc", "a", [("s1", "shared"), ("s2", "shared"), ("s3", "other")])
    write_profile(tmp_path / "b.jsonc", "b", [("s1", "other")])
    write_profile(tmp_path / "c.jsonc", "c", [("x", "shared")])
    assert manager.find_profiles_using_template("shared") == ["a", "c"]
    assert manager.remove_template_references_from_profile("b", "shared") == 0
    assert manager.remove_template_references_from_all_profiles("shared") == 2
    assert [s.name for s in manager.load("a").servers] == ["s3"]
    assert manager.load("c").servers == []
    assert manager.find_profiles_using_template("shared") == []


def test_roundtrip_preserves_overrides(tmp_path):
    manager = ProfileManager(tmp_path)
    manager.create("p", "desc")
    manager.add_server("p", "tmpl", "srv", {"K": "V"})
    raw = json.loads((tmp_path / "p.jsonc").read_text(encoding="utf-8"))
    assert raw["servers"][0] == {"name": "srv", "template": "tmpl", "overrides": {"env": {"K": "V"}}}
    loaded = manager.load("p")
    assert isinstance(loaded, Profile)
    assert loaded.description == "desc"