"""Tests for TOML configuration and credential handling."""

import pytest

from notesync.config import (
    CONFIG_FILENAME,
    PLACEHOLDER_API_KEY,
    StoreConfig,
    get_default_store_path,
    is_enrichment_key_usable,
    load_config,
    load_or_create_config,
    save_config,
)
from notesync.enrichment import EnrichmentEngine


@pytest.fixture(autouse=True)
def no_credentials(monkeypatch):
    for name in ("NOTESYNC_OPENAI_API_KEY", "OPENAI_API_KEY", "NOTESYNC_REMOTE_API_KEY"):
        monkeypatch.delenv(name, raising=False)


class TestConfigFile:

    def test_create_with_defaults(self, tmp_path):
        config = load_or_create_config(tmp_path)
        assert (tmp_path / CONFIG_FILENAME).exists()
        assert config.enrichment.model == "gpt-4o-mini"
        assert config.enrichment.embedding_dimension == 1536
        assert config.timing.enrichment_delay == 1.5
        assert config.timing.autosave_delay == 3.0
        assert config.timing.search_delay == 0.3
        assert config.remote.url == ""

    def test_roundtrip(self, tmp_path):
        config = StoreConfig(path=tmp_path)
        config.remote.url = "https://notes.example.com"
        config.enrichment.max_tags = 8
        save_config(config)

        loaded = load_config(tmp_path)
        assert loaded.remote.url == "https://notes.example.com"
        assert loaded.enrichment.max_tags == 8
        assert loaded.created == config.created

    def test_unknown_keys_ignored(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text(
            '[store]\nversion = 1\n\n[timing]\nautosave_delay = 5.0\nfuture_option = true\n'
        )
        assert load_config(tmp_path).timing.autosave_delay == 5.0

    def test_newer_version_rejected(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("[store]\nversion = 99\n")
        with pytest.raises(ValueError):
            load_config(tmp_path)

    def test_bad_dimension_rejected(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("[enrichment]\nembedding_dimension = 0\n")
        with pytest.raises(ValueError):
            load_config(tmp_path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)


class TestEnvironment:

    @pytest.mark.parametrize("key, usable", [
        (None, False),
        ("", False),
        (PLACEHOLDER_API_KEY, False),
        ("not-an-openai-key", False),
        ("sk-test123", True),
    ])
    def test_key_usability(self, key, usable):
        assert is_enrichment_key_usable(key) is usable

    def test_store_path_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NOTESYNC_STORE_PATH", str(tmp_path))
        assert get_default_store_path() == tmp_path.resolve()

    def test_enrichment_disabled_without_key(self, tmp_path):
        config = StoreConfig(path=tmp_path)
        assert not config.enrichment_enabled
        assert not EnrichmentEngine.from_config(config).backend_enabled

    def test_placeholder_key_keeps_engine_offline(self, tmp_path, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", PLACEHOLDER_API_KEY)
        assert not EnrichmentEngine.from_config(StoreConfig(path=tmp_path)).backend_enabled

    def test_remote_key_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NOTESYNC_REMOTE_API_KEY", "secret")
        assert StoreConfig(path=tmp_path).remote_api_key == "secret"
