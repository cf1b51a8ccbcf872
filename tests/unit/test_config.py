"""
Tests for Configuration System.

This test suite covers:
1. Schema validation (type mismatch, constraint violation)
2. Default config generation (with comments)
3. Config file parsing (settings, hooks, units)
4. Error cases
"""

import tempfile
from pathlib import Path

import pytest
import tomlkit

from lazypack.config import (
    ConfigError,
    PackConfig,
    load_config,
    parse_config,
    write_default_config,
)
from lazypack.config.schema import (
    SETTINGS_SCHEMA,
    ConfigField,
    SchemaError,
    Settings,
    ValidationError,
    validate_settings,
)
from lazypack.config.toml_handler import TOMLError, generate_default_config, read_toml
from lazypack.unit.hooks import HookType


class TestSchemaValidation:
    """Test schema field validation."""

    def test_field_default_type_mismatch(self):
        """ConfigField should reject default value that doesn't match type."""
        with pytest.raises(SchemaError, match="does not match type"):
            ConfigField(int, "not an int", "Bad default")

    def test_field_min_max_constraints(self):
        """ConfigField should enforce min/max constraints for numbers."""
        field = ConfigField(int, 50, "Number with range", min=1, max=100)

        field.validate(1)
        field.validate(100)

        with pytest.raises(ValidationError, match="less than minimum"):
            field.validate(0)
        with pytest.raises(ValidationError, match="greater than maximum"):
            field.validate(101)

    def test_field_min_max_on_string(self):
        """ConfigField should reject min/max on non-numeric types."""
        with pytest.raises(SchemaError, match="only supported for int, float"):
            ConfigField(str, "a", "String", min=1)

    def test_field_choices(self):
        """ConfigField should enforce choices."""
        field = ConfigField(str, "INFO", "Level", choices=["INFO", "DEBUG"])

        field.validate("DEBUG")
        with pytest.raises(ValidationError, match="not in allowed choices"):
            field.validate("TRACE")

    def test_bool_is_not_int(self):
        """ConfigField should not accept a boolean for an integer field."""
        field = ConfigField(int, 60, "Timeout")
        with pytest.raises(ValidationError, match="Expected type int, got bool"):
            field.validate(True)


class TestSettings:
    """Test the settings table."""

    def test_defaults(self):
        """Should match the schema defaults."""
        settings = Settings()
        for name, config_field in SETTINGS_SCHEMA.items():
            assert getattr(settings, name) == config_field.default

    def test_partial_table(self):
        """Should fill missing keys with defaults."""
        settings = Settings.from_dict({"git_timeout": 120, "parallel_install": False})

        assert settings.git_timeout == 120
        assert settings.parallel_install is False
        assert settings.auto_install is True

    def test_unknown_setting(self):
        """Should reject unknown settings."""
        with pytest.raises(ValidationError, match="Unknown setting: colour"):
            validate_settings({"colour": "blue"})

    def test_invalid_value_names_setting(self):
        """Should name the offending setting in the error."""
        with pytest.raises(ValidationError, match="Setting 'git_timeout'"):
            Settings.from_dict({"git_timeout": 0})
        with pytest.raises(ValidationError, match="Setting 'log_level'"):
            Settings.from_dict({"log_level": "LOUD"})


class TestDefaultConfig:
    """Test default config generation."""

    def test_generated_document_parses(self):
        """Generated config should load back into default settings."""
        doc = generate_default_config()
        config = parse_config(tomlkit.parse(tomlkit.dumps(doc)).unwrap())

        assert config.settings == Settings()
        assert config.units == ["nvim-lua/plenary.nvim"]
        assert config.hooks == {}

    def test_generated_comments(self):
        """Generated config should describe each setting and its constraints."""
        text = tomlkit.dumps(generate_default_config())

        for config_field in SETTINGS_SCHEMA.values():
            assert f"# {config_field.description}" in text
        assert "# Constraints: min: 1, max: 3600" in text

    def test_write_default_config(self):
        """Should write a loadable file and refuse to overwrite it."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_file = Path(tmpdir) / "nested" / "lazypack.toml"

            write_default_config(config_file)
            config = load_config(config_file)
            assert config.settings.ecosystem == "nvim"

            with pytest.raises(ConfigError, match="already exists"):
                write_default_config(config_file)


class TestParseConfig:
    """Test config file parsing."""

    def test_full_config(self):
        """Should read settings, hooks, and units."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_file = Path(tmpdir) / "lazypack.toml"
            config_file.write_text(
                "units = [\n"
                '    "nvim-lua/plenary.nvim",\n'
                '    { src = "owner/tree", lazy = true, cmd = "Tree" },\n'
                '    ["owner/git", { priority = 80 }],\n'
                "]\n"
                "\n"
                "[settings]\n"
                "git_timeout = 120\n"
                'install_dir = "/tmp/units"\n'
                "\n"
                "[hooks]\n"
                'post_install = "scripts/post.sh"\n'
                'pre_update = "/opt/hooks/pre.sh"\n'
            )

            config = load_config(config_file)

            assert config.settings.git_timeout == 120
            assert config.settings.install_dir == "/tmp/units"
            assert config.units == [
                "nvim-lua/plenary.nvim",
                {"src": "owner/tree", "lazy": True, "cmd": "Tree"},
                ["owner/git", {"priority": 80}],
            ]
            assert config.hooks == {
                HookType.POST_INSTALL: Path(tmpdir) / "scripts" / "post.sh",
                HookType.PRE_UPDATE: Path("/opt/hooks/pre.sh"),
            }

    def test_empty_config(self):
        """Should accept an empty document."""
        assert parse_config({}) == PackConfig()

    def test_unknown_top_level_key(self):
        """Should reject unknown top-level keys."""
        with pytest.raises(ConfigError, match="Unknown top-level keys: plugins"):
            parse_config({"plugins": []})

    def test_unknown_hook(self):
        """Should reject unknown hook names."""
        with pytest.raises(ConfigError, match="Unknown hook: on_boot"):
            parse_config({"hooks": {"on_boot": "x.sh"}})

    def test_units_must_be_array(self):
        """Should reject a units value that is not an array."""
        with pytest.raises(ConfigError, match="'units' must be an array"):
            parse_config({"units": "owner/a"})

    def test_build_hooks(self):
        """Should register one script hook per configured hook."""
        config = parse_config({"hooks": {"post_update": "/opt/hooks/post.sh"}})
        dispatcher = config.build_hooks()

        assert dispatcher.has(HookType.POST_UPDATE)
        assert not dispatcher.has(HookType.PRE_UPDATE)

    def test_missing_file(self):
        """Should raise TOMLError for a missing file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(TOMLError, match="not found"):
                read_toml(Path(tmpdir) / "missing.toml")

    def test_malformed_file(self):
        """Should raise TOMLError for invalid TOML."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_file = Path(tmpdir) / "bad.toml"
            config_file.write_text("units = [\n")

            with pytest.raises(TOMLError, match="Failed to parse"):
                load_config(config_file)
