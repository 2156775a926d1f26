"""Tests for engine configuration and the TOML config manager."""

import io

import pytest
import toml

from codespan_cli import config, config_manager
from codespan_cli.config import (
    MAX_CONTEXT_LINES,
    EngineConfig,
    engine_config_from_mapping,
    load_engine_config,
    resolve_color,
)
from codespan_cli.errors import UsageError


class TestEngineConfig:
    def test_defaults(self):
        cfg = EngineConfig()

        assert cfg.import_mode == "none"
        assert cfg.type_filter == "py"
        assert cfg.smart_padding == 25
        assert cfg.diff_context == 20
        assert cfg.use_prefilter

    @pytest.mark.parametrize("kwargs", [
        {"import_mode": "some"},
        {"type_filter": "rs"},
        {"parser_backend": "regex"},
        {"context_lines": -1},
        {"diff_context": -5},
    ])
    def test_invalid_values_are_rejected(self, kwargs):
        with pytest.raises(UsageError):
            EngineConfig(**kwargs)

    def test_context_is_clamped(self):
        assert EngineConfig(context_lines=MAX_CONTEXT_LINES + 1000).context_lines == MAX_CONTEXT_LINES

    def test_with_overrides_skips_none(self):
        cfg = EngineConfig(import_mode="all").with_overrides(import_mode=None, first_only=True)

        assert cfg.import_mode == "all"
        assert cfg.first_only

    def test_mapping_coerces_strings_and_ignores_unknown_keys(self):
        cfg = engine_config_from_mapping({
            "context_lines": "7",
            "include_nested": "yes",
            "use_prefilter": "0",
            "colour": "blue",
        })

        assert cfg.context_lines == 7
        assert cfg.include_nested is True
        assert cfg.use_prefilter is False

    def test_mapping_rejects_non_integer(self):
        with pytest.raises(UsageError):
            engine_config_from_mapping({"context_lines": "lots"})


class TestConfigManager:
    def test_missing_file_gives_defaults(self):
        assert config_manager.load_full_config() == {}
        assert load_engine_config() == EngineConfig()

    def test_save_and_load_round_trip(self):
        config_manager.save_engine_setting("import_mode", "used")
        config_manager.save_engine_setting("context_lines", "3")

        saved = toml.load(str(config.CONFIG_FILE))
        assert saved["engine"] == {"import_mode": "used", "context_lines": 3}
        assert load_engine_config() == EngineConfig(import_mode="used", context_lines=3)

    def test_other_sections_are_preserved(self):
        config.BASE_DIR.mkdir(parents=True, exist_ok=True)
        config.CONFIG_FILE.write_text('[ui]\ntheme = "dark"\n')

        config_manager.save_engine_setting("first_only", "true")
        config_manager.clear_engine_config()

        assert toml.load(str(config.CONFIG_FILE)) == {"ui": {"theme": "dark"}}

    def test_invalid_settings_never_reach_the_file(self):
        with pytest.raises(KeyError):
            config_manager.save_engine_setting("verbosity", "3")
        with pytest.raises(UsageError):
            config_manager.save_engine_setting("import_mode", "some")

        assert not config.CONFIG_FILE.exists()

    def test_unreadable_file_is_ignored(self):
        config.BASE_DIR.mkdir(parents=True, exist_ok=True)
        config.CONFIG_FILE.write_text("this is = = not toml")

        assert config_manager.load_full_config() == {}

    def test_environment_overrides(self, monkeypatch):
        config_manager.save_engine_setting("diff_context", "5")
        monkeypatch.setenv("CODESPAN_DIFF_CONTEXT", "9")
        monkeypatch.setenv("CODESPAN_DISABLE_RG", "1")

        cfg = load_engine_config()

        assert cfg.diff_context == 9
        assert cfg.use_prefilter is False


class _Tty(io.StringIO):
    def isatty(self):
        return True


class TestResolveColor:
    def test_explicit_modes(self):
        assert resolve_color("always", io.StringIO())
        assert not resolve_color("never", _Tty())

    def test_auto_follows_the_stream(self):
        assert resolve_color("auto", _Tty())
        assert not resolve_color("auto", io.StringIO())

    def test_no_color_wins(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")

        assert not resolve_color("always", _Tty())

    def test_invalid_mode(self):
        with pytest.raises(UsageError):
            resolve_color("sometimes")
