"""
AddressKit — Configuration Tests

Loading of config.yaml and .env values.

@file tests/test_configs.py
"""

from addresskit.configs import REPO_ROOT, _load_configs, _load_env, env_flag, get_setting


class TestConfigs:
    def test_root_path_is_substituted(self):
        v1_path = get_setting("fallback", "v1_path")
        assert v1_path == f"{REPO_ROOT}/data/full-address.json"

    def test_missing_section_uses_default(self):
        assert get_setting("nowhere", "key", "fallback") == "fallback"
        assert get_setting("search", "limit") == 50

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("app:\n  paths: ['<ROOT_PATH>/a', 3]\n", encoding="utf-8")
        assert _load_configs(path) == {"app": {"paths": [f"{REPO_ROOT}/a", 3]}}

    def test_missing_yaml_file(self, tmp_path):
        assert _load_configs(tmp_path / "none.yaml") == {}

    def test_process_environment_wins(self, tmp_path, monkeypatch):
        path = tmp_path / ".env"
        path.write_text("MONGO_DB=from_file\nOTHER=1\n", encoding="utf-8")
        monkeypatch.setenv("MONGO_DB", "from_env")
        loaded = _load_env(path)
        assert loaded["MONGO_DB"] == "from_env"
        assert loaded["OTHER"] == "1"

    def test_env_flag(self):
        assert env_flag("True") and env_flag(" 1 ")
        assert not env_flag(None)
