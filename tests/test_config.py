"""Tests for tddwatch.config loading and validation."""

import logging
import sys
from pathlib import Path

import pytest

from tddwatch.config import DisplayConfig, RunnerSettings, load_config
from tddwatch.errors import ConfigurationError
from tddwatch.models import RunState
from tddwatch.watchers import DEFAULT_IGNORE_DIRS


def write(tmp_path, text, name="tddwatch.toml"):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestLoadConfig:
    """Tests for load_config."""

    def test_load_full_config(self, tmp_path):
        (tmp_path / "src").mkdir()
        path = write(
            tmp_path,
            """
[runner]
command = "pytest"
args = ["-q", "-x"]
working_dir = "."
debounce_ms = 250
output_buffer_limit_bytes = 1024
cancel_grace_ms = 500

[[file_watcher]]
dir = "src"
patterns = ["**/*.py"]
ignore_dirs = ["build"]
settle_ms = 20

[display]
glyph = "■"
failed = "bright_red"
""",
        )

        config = load_config(path)

        assert config.path == path
        assert config.runner.command == "pytest"
        assert config.runner.args == ["-q", "-x"]
        assert config.runner.working_dir == tmp_path.resolve()
        assert config.runner.debounce_ms == 250
        assert config.runner.output_buffer_limit_bytes == 1024
        assert config.runner.cancel_grace_ms == 500
        assert config.runner.shell is False

        assert len(config.watchers) == 1
        watcher = config.watchers[0]
        assert watcher.dir == (tmp_path / "src").resolve()
        assert watcher.patterns == ["**/*.py"]
        assert watcher.ignore_dirs == ["build"]
        assert watcher.settle_ms == 20

        assert config.display.glyph == "■"
        assert config.display.failed == "bright_red"
        assert config.display.succeeded == "green"

    def test_defaults(self, tmp_path):
        path = write(tmp_path, '[runner]\ncommand = "make"\n')

        config = load_config(path)

        assert config.runner.args == []
        assert config.runner.debounce_ms == 0
        assert config.runner.output_buffer_limit_bytes == 65536
        assert config.watchers == []
        assert config.display == DisplayConfig()

    def test_watcher_default_ignore_dirs(self, tmp_path):
        path = write(tmp_path, '[runner]\ncommand = "make"\n\n[[file_watcher]]\ndir = "."\n')
        watcher = load_config(path).watchers[0]
        assert watcher.ignore_dirs == DEFAULT_IGNORE_DIRS
        assert watcher.settle_ms == 100

    def test_paths_resolve_relative_to_config_file(self, tmp_path):
        project = tmp_path / "project"
        (project / "tests").mkdir(parents=True)
        path = write(project, '[runner]\ncommand = "make"\nworking_dir = "tests"\n')

        config = load_config(path)

        assert config.runner.working_dir == (project / "tests").resolve()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_config(tmp_path / "missing.toml")

    def test_invalid_toml(self, tmp_path):
        path = write(tmp_path, "[runner\ncommand = ")
        with pytest.raises(ConfigurationError, match="Failed to parse"):
            load_config(path)

    def test_missing_runner_section(self, tmp_path):
        path = write(tmp_path, '[[file_watcher]]\ndir = "."\n')
        with pytest.raises(ConfigurationError, match=r"missing \[runner\]"):
            load_config(path)

    def test_watcher_without_dir(self, tmp_path):
        path = write(tmp_path, '[runner]\ncommand = "make"\n\n[[file_watcher]]\npatterns = ["*.py"]\n')
        with pytest.raises(ConfigurationError, match="missing 'dir'"):
            load_config(path)

    @pytest.mark.parametrize(
        "runner_body",
        [
            'command = ""',
            'command = "make"\nargs = "all"',
            'command = "make"\ndebounce_ms = -1',
            'command = "make"\noutput_buffer_limit_bytes = 0',
            'command = "make"\ncancel_grace_ms = -5',
            'command = "make"\nworking_dir = "nowhere"',
        ],
    )
    def test_invalid_runner_values(self, tmp_path, runner_body):
        path = write(tmp_path, f"[runner]\n{runner_body}\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    @pytest.mark.parametrize(
        "body,message",
        [
            ('[[file_watcher]]\ndir = "."\nsettle_ms = "100"', "settle_ms"),
            ('[[file_watcher]]\ndir = "."\nsettle_ms = -1', "settle_ms"),
            ('[[file_watcher]]\ndir = "."\nsettle_ms = true', "settle_ms"),
            ('[[file_watcher]]\ndir = "."\npatterns = "*.py"', "patterns"),
            ('[[file_watcher]]\ndir = "."\nextensions = [1]', "extensions"),
            ('[[file_watcher]]\ndir = "."\nignore_dirs = "build"', "ignore_dirs"),
            ("[[file_watcher]]\ndir = 5", "dir"),
            ('file_watcher = "src"', "file_watcher"),
            ('display = "dots"', "display"),
            ("[display]\nglyph = 1", "glyph"),
        ],
    )
    def test_invalid_watcher_and_display_values(self, tmp_path, body, message):
        path = write(tmp_path, f'{body}\n\n[runner]\ncommand = "make"\n')
        with pytest.raises(ConfigurationError, match=message):
            load_config(path)

    @pytest.mark.parametrize("runner_body", ['command = "make"\nworking_dir = 3', 'command = "make"\nshell = "false"'])
    def test_invalid_runner_types(self, tmp_path, runner_body):
        path = write(tmp_path, f"[runner]\n{runner_body}\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_configuration_error_is_value_error(self, tmp_path):
        path = write(tmp_path, '[runner]\ncommand = "make"\ndebounce_ms = -1\n')
        with pytest.raises(ValueError):
            load_config(path)

    def test_unknown_runner_key_warns(self, tmp_path, caplog):
        path = write(tmp_path, '[runner]\ncommand = "make"\ntimeout = 5\n')
        with caplog.at_level(logging.WARNING, logger="tddwatch.config"):
            load_config(path)
        assert "Unknown key in [runner]: timeout" in caplog.text


class TestRunnerSettings:
    """Tests for RunnerSettings helpers."""

    def test_display_command_quotes_arguments(self, tmp_path):
        settings = RunnerSettings(command="pytest", args=["-k", "slow and not db"], working_dir=tmp_path)
        assert settings.display_command() == "pytest -k 'slow and not db'"

    def test_display_command_shell(self, tmp_path):
        settings = RunnerSettings(command="make test", args=["V=1"], working_dir=tmp_path, shell=True)
        assert settings.display_command() == "make test V=1"

    def test_display_command_shell_quotes_arguments(self, tmp_path):
        settings = RunnerSettings(command="printf '%s\\n'", args=["a b"], working_dir=tmp_path, shell=True)
        assert settings.display_command() == "printf '%s\\n' 'a b'"

    def test_resolve_executable_on_path(self, tmp_path):
        settings = RunnerSettings(command="sh", working_dir=tmp_path)
        assert settings.resolve_executable() is not None

    def test_resolve_executable_missing(self, tmp_path):
        settings = RunnerSettings(command="definitely-not-a-real-command-xyz", working_dir=tmp_path)
        assert settings.resolve_executable() is None

    def test_resolve_executable_relative_to_working_dir(self, tmp_path):
        script = tmp_path / "bin" / "check.sh"
        script.parent.mkdir()
        script.write_text("#!/bin/sh\n")
        settings = RunnerSettings(command="bin/check.sh", working_dir=tmp_path)
        assert settings.resolve_executable() == str(tmp_path / "bin" / "check.sh")

    def test_resolve_executable_shell_is_not_checked(self, tmp_path):
        settings = RunnerSettings(command="whatever | nothing", working_dir=tmp_path, shell=True)
        assert settings.resolve_executable() == "whatever | nothing"

    def test_validate_accepts_defaults(self, tmp_path):
        RunnerSettings(command=sys.executable, working_dir=tmp_path).validate()

    def test_validate_rejects_bool_debounce(self, tmp_path):
        with pytest.raises(ConfigurationError, match="debounce_ms"):
            RunnerSettings(command="make", working_dir=tmp_path, debounce_ms=True).validate()

    def test_validate_rejects_missing_working_dir(self, tmp_path):
        with pytest.raises(ConfigurationError, match="working_dir"):
            RunnerSettings(command="make", working_dir=Path(tmp_path / "gone")).validate()


def test_display_color_for_state():
    display = DisplayConfig(running="blue")
    assert display.color_for(RunState.RUNNING) == "blue"
    assert display.color_for(RunState.SUCCEEDED) == "green"
    assert display.color_for(RunState.FAILED) == "red"
    assert display.color_for(RunState.IDLE) == "grey50"
