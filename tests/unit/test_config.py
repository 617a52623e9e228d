"""
Tests for the configuration system.

This test suite covers:
1. ConfigField validation
2. Settings and plugin schemas
3. TOML reading and writing
4. Plugin declarations and the registry
5. Config file discovery and the starter template
"""

import tempfile
import tomllib
from pathlib import Path

import pytest

from plugsync.config import (
    Settings,
    build_registry,
    find_config_file,
    generate_default_config,
    load_config,
)
from plugsync.config.schema import (
    PLUGIN_SCHEMA,
    SETTINGS_SCHEMA,
    ConfigField,
    SchemaError,
    ValidationError,
    defaults,
    validate_config,
)
from plugsync.config.toml_handler import TOMLError, read_toml, write_toml
from plugsync.errors import ConfigError
from plugsync.plugin.hooks import HookKind
from plugsync.plugin.unit import Registry, Unit, name_from_spec, unit_from_spec


class TestConfigField:
    """Test ConfigField validation."""

    def test_default_must_match_type(self):
        with pytest.raises(SchemaError):
            ConfigField(int, "8")

    def test_min_max_only_for_numbers(self):
        with pytest.raises(SchemaError):
            ConfigField(str, "", min=1)

    def test_default_must_be_a_choice(self):
        with pytest.raises(SchemaError):
            ConfigField(str, "svn", choices=["git", "local"])

    def test_bool_is_not_an_int(self):
        field = ConfigField(int, 0)
        with pytest.raises(ValidationError):
            field.validate(True)

    def test_bounds(self):
        field = ConfigField(int, 5, min=1, max=10)
        field.validate(1)
        field.validate(10)
        with pytest.raises(ValidationError):
            field.validate(0)
        with pytest.raises(ValidationError):
            field.validate(11)


class TestValidateConfig:
    def test_defaults_filled(self):
        values = validate_config({"max_jobs": 4}, SETTINGS_SCHEMA, "settings")
        assert values["max_jobs"] == 4
        assert values["git_cmd"] == "git"
        assert set(values) == set(SETTINGS_SCHEMA)

    def test_unknown_field(self):
        with pytest.raises(ValidationError, match="in \\[settings\\]: bogus"):
            validate_config({"bogus": 1}, SETTINGS_SCHEMA, "settings")

    def test_wrong_type_names_field(self):
        with pytest.raises(ValidationError, match="Field 'autoremove'"):
            validate_config({"autoremove": "yes"}, SETTINGS_SCHEMA)

    def test_negative_jobs(self):
        with pytest.raises(ValidationError):
            validate_config({"max_jobs": -1}, SETTINGS_SCHEMA)

    def test_plugin_type_choices(self):
        with pytest.raises(ValidationError):
            validate_config({"type": "svn"}, PLUGIN_SCHEMA)

    def test_schema_defaults(self):
        assert defaults(PLUGIN_SCHEMA)["start"] is False


class TestTOMLHandler:
    def test_round_trip(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "out.toml"
            write_toml(path, {"settings": {"max_jobs": 3}})
            assert read_toml(path) == {"settings": {"max_jobs": 3}}

    def test_missing_file(self):
        with pytest.raises(TOMLError, match="not found"):
            read_toml(Path("/nonexistent/plugsync.toml"))

    def test_invalid_toml(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "bad.toml"
            path.write_text("[settings\n")
            with pytest.raises(TOMLError, match="Failed to parse"):
                read_toml(path)

    def test_errors_are_config_errors(self):
        assert issubclass(TOMLError, ConfigError)


class TestUnitFromSpec:
    """Test turning declarations into units."""

    def test_name_from_spec(self):
        assert name_from_spec("tpope/vim-fugitive") == "vim-fugitive"
        assert name_from_spec("https://example.com/x/foo.nvim.git") == "foo.nvim"
        assert name_from_spec("git@github.com:owner/repo.git") == "repo"

    def test_shorthand_uses_url_format(self):
        unit = unit_from_spec("tpope/vim-fugitive")
        assert unit.type == "git"
        assert unit.url == "https://github.com/tpope/vim-fugitive"

    def test_full_url(self):
        unit = unit_from_spec("git@example.com:me/tool.git")
        assert unit.url == "git@example.com:me/tool.git"
        assert unit.name == "tool"

    def test_local_path(self):
        unit = unit_from_spec("~/src/myplugin")
        assert unit.type == "local"
        assert unit.url == str(Path("~/src/myplugin").expanduser())

    def test_options(self):
        unit = unit_from_spec(
            "owner/repo",
            {"start": True, "lock": True, "tag": "*", "run": ":Build", "as": "alias"},
        )
        assert unit.name == "alias"
        assert unit.start and unit.lock
        assert unit.tag == "*"
        assert unit.branch is None
        assert unit.run.kind is HookKind.COMMAND
        assert unit.run.target == "Build"

    def test_invalid_name(self):
        with pytest.raises(ConfigError):
            unit_from_spec("owner/repo", {"as": "../escape"})


class TestRegistry:
    def test_install_paths(self):
        registry = Registry(Path("/p/start"), Path("/p/opt"))
        registry.add(Unit(name="a", start=True))
        registry.add(Unit(name="b"))

        assert registry.get("a").install_path == Path("/p/start/a")
        assert registry.get("b").install_path == Path("/p/opt/b")
        assert registry.names() == ["a", "b"]
        assert "a" in registry and "z" not in registry
        assert len(registry) == 2

    def test_duplicate_name(self):
        registry = Registry(Path("/p/start"), Path("/p/opt"))
        registry.add(Unit(name="a", spec="one/a"))
        with pytest.raises(ConfigError, match="declared twice"):
            registry.add(Unit(name="a", spec="two/a"))

    def test_set_placement(self):
        registry = Registry(Path("/p/start"), Path("/p/opt"), [Unit(name="a")])
        registry.set_placement("a", True)
        assert registry.get("a").start is True
        assert registry.get("a").install_path == Path("/p/start/a")


class TestSettings:
    def test_roots_relative_to_package_root(self):
        settings = Settings.from_table({"package_root": "/pack"}, base_dir=Path("/cfg"))
        assert settings.start_dir == Path("/pack/start")
        assert settings.opt_dir == Path("/pack/opt")
        assert settings.lockfile == Path("/cfg/plugsync-lock.toml")
        assert settings.max_jobs is None

    def test_absolute_roots(self):
        settings = Settings.from_table(
            {"package_root": "/pack", "start_dir": "/elsewhere/start", "max_jobs": 4}
        )
        assert settings.start_dir == Path("/elsewhere/start")
        assert settings.max_jobs == 4


class TestLoadConfig:
    """Test loading complete config files."""

    def test_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "plugsync.toml"
            path.write_text(
                f"""
[settings]
package_root = "{tmpdir}/pack"
autoremove = true

[plugins."tpope/vim-fugitive"]
start = true

[plugins."nvim-treesitter/nvim-treesitter"]
run = ":TSUpdate"
"""
            )

            settings, registry = load_config(path)

            assert settings.autoremove is True
            assert registry.names() == ["nvim-treesitter", "vim-fugitive"]
            assert registry.get("vim-fugitive").install_path == Path(tmpdir) / "pack/start/vim-fugitive"
            assert registry.get("nvim-treesitter").run.target == "TSUpdate"

    def test_plugin_must_be_table(self):
        with pytest.raises(ConfigError, match="must be a table"):
            build_registry({"owner/repo": True}, Settings.from_table({}))

    def test_find_config_file(self, monkeypatch):
        monkeypatch.delenv("PLUGSYNC_CONFIG", raising=False)
        assert find_config_file() == Path("plugsync.toml")
        monkeypatch.setenv("PLUGSYNC_CONFIG", "/etc/plugsync.toml")
        assert find_config_file() == Path("/etc/plugsync.toml")
        assert find_config_file(Path("x.toml")) == Path("x.toml")

    def test_default_config_is_loadable(self):
        """The starter config parses and validates."""
        text = generate_default_config()
        data = tomllib.loads(text)

        assert set(data["settings"]) == set(SETTINGS_SCHEMA)
        assert "tpope/vim-fugitive" in data["plugins"]

        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "plugsync.toml"
            path.write_text(text)
            settings, registry = load_config(path)
            assert registry.names() == ["vim-fugitive"]
            assert settings.max_jobs is None
