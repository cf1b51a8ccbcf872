"""
Tests for the lpm CLI.
"""

import subprocess
from unittest.mock import patch

import pytest

from lazypack.unit.registry import UnitState
from lazypack.unit.spec import normalize
from lpm.cli import create_parser, main
from lpm.commands.query import format_status, format_unit


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "lazypack.toml"
    path.write_text(
        "units = [\n"
        '    "owner/alpha",\n'
        '    { src = "owner/beta", lazy = true, cmd = "Beta", event = "VeryLazy" },\n'
        '    { src = "owner/gamma", enabled = false },\n'
        "]\n"
        "\n"
        "[settings]\n"
        f'install_dir = "{tmp_path / "units"}"\n'
        'log_level = "ERROR"\n'
    )
    return path


class TestParser:
    """Test argument parsing."""

    def test_combined_flags(self):
        """Should parse pacman-style combined flags."""
        args = create_parser().parse_args(["-Sy"])
        assert args.sync and args.refresh

        args = create_parser().parse_args(["-Qi", "alpha"])
        assert args.query and args.info
        assert args.targets == ["alpha"]

    def test_operations_exclusive(self):
        """Should reject two operations at once."""
        with pytest.raises(SystemExit):
            create_parser().parse_args(["-S", "-R"])


class TestCommands:
    """Test command execution."""

    def test_help(self, capsys):
        """Should print help with no operation."""
        assert main([]) == 0
        assert "lpm - Lazypack Package Manager" in capsys.readouterr().out

    def test_init(self, tmp_path, capsys):
        """Should write a default config, then refuse to overwrite it."""
        path = tmp_path / "lazypack.toml"

        assert main(["--init", "-c", str(path)]) == 0
        assert path.exists()
        assert "Wrote" in capsys.readouterr().out

        assert main(["--init", "-c", str(path)]) == 1
        assert "already exists" in capsys.readouterr().err

    def test_missing_config(self, tmp_path, capsys):
        """Should fail cleanly when the config file does not exist."""
        assert main(["-Q", "-c", str(tmp_path / "nope.toml")]) == 1
        assert "TOML file not found" in capsys.readouterr().err

    def test_query(self, config_file, capsys):
        """Should group units by state."""
        assert main(["-Q", "-c", str(config_file)]) == 0
        out = capsys.readouterr().out

        assert "Units managed: 3" in out
        assert "Units on disk: 0" in out
        assert "Not Loaded (1):" in out
        assert "beta [after startup; cmd: Beta]" in out
        assert "Disabled (1):" in out

    def test_query_with_load(self, config_file, capsys):
        """Should report eager units as configured with --load."""
        assert main(["-Q", "--load", "-c", str(config_file)]) == 0
        out = capsys.readouterr().out

        assert "Configured (1):" in out
        assert "alpha" in out

    def test_query_info(self, config_file, capsys):
        """Should print details of one unit."""
        assert main(["-Qi", "beta", "-c", str(config_file)]) == 0
        out = capsys.readouterr().out

        assert "Source        : https://github.com/owner/beta" in out
        assert "Lazy          : yes" in out

    def test_query_info_unknown(self, config_file, capsys):
        """Should reject unknown units."""
        assert main(["-Qi", "delta", "-c", str(config_file)]) == 1
        assert "Unknown unit(s): delta" in capsys.readouterr().err

    def test_upgrade_unknown(self, config_file, capsys):
        """Should reject unknown units before updating anything."""
        assert main(["-U", "delta", "-c", str(config_file)]) == 1
        assert "Unknown unit(s): delta" in capsys.readouterr().err

    def test_sync_rejects_targets(self, config_file, capsys):
        """Should refuse targets for -S."""
        assert main(["-S", "alpha", "-c", str(config_file)]) == 1

    def test_sync(self, config_file, tmp_path, capsys):
        """Should clone the enabled units that are missing."""
        done = subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr="")

        with patch("lazypack.unit.installer.subprocess.run", return_value=done) as run:
            assert main(["-S", "-c", str(config_file)]) == 0

        cloned = sorted(call.args[0][-1] for call in run.call_args_list)
        assert cloned == [str(tmp_path / "units" / "alpha"), str(tmp_path / "units" / "beta")]
        assert "Installed: alpha, beta" in capsys.readouterr().out

    def test_remove_nothing(self, config_file, capsys):
        """Should report when nothing needs cleaning."""
        assert main(["-R", "-c", str(config_file)]) == 0
        assert "No units to clean" in capsys.readouterr().out


class TestFormatting:
    """Test status rendering."""

    def test_failed_unit_shows_error(self):
        """Should list a failed unit with its error."""
        record = normalize("owner/broken")
        record.advance(UnitState.LOADING)
        record.advance(UnitState.FAILED, RuntimeError("bad config"))

        lines = format_status({"broken": record}, installed={"broken"})

        assert "Units on disk: 1" in lines
        assert "  ✗ broken: bad config" in lines
        assert "Error         : bad config" in format_unit(record)
