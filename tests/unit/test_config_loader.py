"""Tests for the runner settings loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from snapcd_runner.config.loader import ConfigError, load_settings
from snapcd_runner.config.schema import RunnerSettings


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestLoadSettingsYaml:
    def test_values_from_yaml(self, tmp_path: Path) -> None:
        f = _write(
            tmp_path / "runner.yaml",
            "working_directory: /srv/modules\n"
            "temp_directory: /srv/temp\n"
            "additional_binary_paths:\n  - /opt/terraform\n  - /opt/pulumi\n",
        )

        settings = load_settings(f)

        assert settings.working_directory == Path("/srv/modules")
        assert settings.temp_directory == Path("/srv/temp")
        assert settings.additional_binary_paths == [Path("/opt/terraform"), Path("/opt/pulumi")]

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        settings = load_settings(_write(tmp_path / "runner.yaml", ""))
        assert settings == RunnerSettings()
        assert settings.additional_binary_paths == []

    def test_home_is_expanded(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        f = _write(
            tmp_path / "runner.yaml",
            "working_directory: ~/modules\nadditional_binary_paths: [~/bin]\n",
        )

        settings = load_settings(f)

        assert settings.working_directory == tmp_path / "home" / "modules"
        assert settings.additional_binary_paths == [tmp_path / "home" / "bin"]

    def test_unknown_key(self, tmp_path: Path) -> None:
        f = _write(tmp_path / "runner.yaml", "working_dir: /srv\n")
        with pytest.raises(ConfigError, match="working_dir"):
            load_settings(f)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        f = _write(tmp_path / "runner.yaml", "- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(f)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        f = _write(tmp_path / "runner.yaml", "working_directory: [unclosed\n")
        with pytest.raises(ConfigError, match="Failed to read"):
            load_settings(f)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_settings(tmp_path / "absent.yaml")

    def test_invalid_value(self, tmp_path: Path) -> None:
        f = _write(tmp_path / "runner.yaml", "working_directory:\n  nested: true\n")
        with pytest.raises(ConfigError):
            load_settings(f)


class TestLoadSettingsPriority:
    def test_env_used_when_yaml_silent(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SNAPCD_TEMP_DIRECTORY", "/env/temp")
        f = _write(tmp_path / "runner.yaml", "working_directory: /yaml/modules\n")

        settings = load_settings(f)

        assert settings.working_directory == Path("/yaml/modules")
        assert settings.temp_directory == Path("/env/temp")

    def test_yaml_beats_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SNAPCD_WORKING_DIRECTORY", "/env/modules")
        f = _write(tmp_path / "runner.yaml", "working_directory: /yaml/modules\n")

        assert load_settings(f).working_directory == Path("/yaml/modules")

    def test_dotenv_next_to_config(self, tmp_path: Path) -> None:
        _write(tmp_path / "cfg" / ".env", "SNAPCD_WORKING_DIRECTORY=/dotenv/modules\n")
        f = _write(tmp_path / "cfg" / "runner.yaml", "{}\n")

        assert load_settings(f).working_directory == Path("/dotenv/modules")

    def test_env_beats_dotenv(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SNAPCD_WORKING_DIRECTORY", "/env/modules")
        _write(tmp_path / ".env", "SNAPCD_WORKING_DIRECTORY=/dotenv/modules\n")

        assert load_settings(_write(tmp_path / "runner.yaml", "")).working_directory == Path(
            "/env/modules"
        )

    def test_colon_separated_binary_paths(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SNAPCD_ADDITIONAL_BINARY_PATHS", "/opt/a::/opt/b")

        assert load_settings().additional_binary_paths == [Path("/opt/a"), Path("/opt/b")]

    def test_no_path_reads_dotenv_in_cwd(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        _write(tmp_path / ".env", "SNAPCD_TEMP_DIRECTORY=/cwd/temp\n")

        assert load_settings().temp_directory == Path("/cwd/temp")
