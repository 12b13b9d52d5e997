"""Tests for configuration system."""

import os
import tempfile
from pathlib import Path

import pytest
import yaml
from remind.config.loader import ConfigLoader, deep_merge, find_project_root, load_yaml_config
from remind.config.schema import (
    AudioConfig,
    RemindConfig,
    VoiceLiveConfig,
    VoiceSettings,
    clamp_speaking_rate,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep REMIND_* variables from the host out of these tests."""
    for key in list(os.environ):
        if key.startswith("REMIND_"):
            monkeypatch.delenv(key)


class TestDeepMerge:
    """Tests for deep_merge function."""

    def test_simple_merge(self) -> None:
        """Test merging flat dictionaries."""
        base = {"a": 1, "b": 2}
        override = {"b": 3, "c": 4}
        result = deep_merge(base, override)
        assert result == {"a": 1, "b": 3, "c": 4}

    def test_nested_merge(self) -> None:
        """Test merging nested dictionaries."""
        base = {"outer": {"a": 1, "b": 2}}
        override = {"outer": {"b": 3, "c": 4}}
        result = deep_merge(base, override)
        assert result == {"outer": {"a": 1, "b": 3, "c": 4}}

    def test_base_unchanged(self) -> None:
        """Test that base dictionary is not modified."""
        base = {"a": 1}
        override = {"b": 2}
        deep_merge(base, override)
        assert base == {"a": 1}

    def test_empty_override(self) -> None:
        """Test merging with empty override."""
        base = {"a": 1, "b": 2}
        override: dict = {}
        result = deep_merge(base, override)
        assert result == {"a": 1, "b": 2}


class TestLoadYamlConfig:
    """Tests for load_yaml_config function."""

    def test_load_existing_file(self) -> None:
        """Test loading existing YAML file."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            yaml.dump({"key": "value"}, f)
            f.flush()
            result = load_yaml_config(Path(f.name))
            assert result == {"key": "value"}

    def test_load_nonexistent_file(self) -> None:
        """Test loading non-existent file returns empty dict."""
        result = load_yaml_config(Path("/nonexistent/path.yaml"))
        assert result == {}

    def test_load_non_mapping(self, tmp_config_dir: Path) -> None:
        """Test a YAML list is treated as empty config."""
        path = tmp_config_dir / "list.yaml"
        path.write_text("- a\n- b\n")
        assert load_yaml_config(path) == {}


class TestVoiceLiveConfig:
    """Tests for VoiceLiveConfig."""

    def test_websocket_url(self) -> None:
        """Test the endpoint is built from resource, version and model."""
        config = VoiceLiveConfig(api_key="k", resource_name="my-res")
        assert config.websocket_url == (
            "wss://my-res.services.ai.azure.com/voice-live/realtime"
            "?api-version=2025-05-01-preview&model=gpt-4o-realtime-preview"
        )

    def test_no_url_without_resource(self) -> None:
        """Test a missing resource name yields no URL."""
        assert VoiceLiveConfig(api_key="k").websocket_url is None

    def test_validate_settings(self) -> None:
        """Test missing credentials are reported one at a time."""
        assert "API key" in VoiceLiveConfig().validate_settings()
        assert "resource name" in VoiceLiveConfig(api_key="k").validate_settings()
        assert VoiceLiveConfig(api_key="k", resource_name="r").is_valid

    def test_timeout_validation(self) -> None:
        """Test timeouts must be positive."""
        with pytest.raises(ValueError):
            VoiceLiveConfig(connect_timeout_seconds=0)


class TestVoiceSettings:
    """Tests for VoiceSettings."""

    def test_defaults(self) -> None:
        """Test default voice settings."""
        settings = VoiceSettings()
        assert settings.speaking_rate == 1.0
        assert settings.voice_name == "en-US-AvaMultilingualNeural"

    @pytest.mark.parametrize("rate,expected", [(0.1, 0.5), (0.5, 0.5), (1.2, 1.2), (9.0, 1.5)])
    def test_speaking_rate_clamped(self, rate: float, expected: float) -> None:
        """Test out-of-range rates are clamped instead of rejected."""
        assert clamp_speaking_rate(rate) == expected
        assert VoiceSettings(speaking_rate=rate).speaking_rate == expected

    def test_session_temperature_range(self) -> None:
        """Test session temperature is limited to 0.6-1.2."""
        with pytest.raises(ValueError):
            VoiceSettings(session_temperature=0.2)

    def test_to_session(self) -> None:
        """Test the session.update payload."""
        session = VoiceSettings(speaking_rate=1.25, instructions="Be brief").to_session().to_wire()

        assert session["modalities"] == ["text", "audio"]
        assert session["input_audio_format"] == "pcm16"
        assert session["output_audio_format"] == "pcm16"
        assert session["instructions"] == "Be brief"
        assert session["voice"]["type"] == "azure-standard"
        assert session["voice"]["rate"] == "1.2"
        assert session["turn_detection"] == {
            "type": "server_vad",
            "threshold": 0.5,
            "prefix_padding_ms": 300,
            "silence_duration_ms": 500,
        }
        assert session["input_audio_transcription"]["model"] == "whisper-1"


class TestRemindConfig:
    """Tests for RemindConfig schema."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        config = RemindConfig()
        assert config.log_level == "INFO"
        assert config.audio.sample_rate == 24000
        assert not config.voicelive.is_valid

    def test_config_dir_expansion(self) -> None:
        """Test that the config dir is expanded."""
        config = RemindConfig(config_dir=Path("~/somewhere"))
        assert not str(config.config_dir).startswith("~")
        assert config.settings_path.name == "voice_settings.yaml"

    def test_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test nested settings come from REMIND_* variables."""
        monkeypatch.setenv("REMIND_VOICELIVE__API_KEY", "from-env")
        monkeypatch.setenv("REMIND_LOG_LEVEL", "DEBUG")
        config = RemindConfig()
        assert config.voicelive.api_key == "from-env"
        assert config.log_level == "DEBUG"

    def test_mono_only(self) -> None:
        """Test audio is mono."""
        with pytest.raises(ValueError):
            AudioConfig(channels=2)


class TestConfigLoader:
    """Tests for ConfigLoader."""

    def test_layer_order(self, tmp_config_dir: Path) -> None:
        """Test later YAML layers and CLI overrides win."""
        global_dir = tmp_config_dir / "global"
        project = tmp_config_dir / "project"
        (project / ".remind").mkdir(parents=True)
        global_dir.mkdir()

        (global_dir / "config.yaml").write_text(
            yaml.dump({"log_level": "WARNING", "voicelive": {"resource_name": "global"}})
        )
        (project / ".remind" / "config.yaml").write_text(
            yaml.dump({"voicelive": {"resource_name": "project"}})
        )
        (project / ".remind" / "config.local.yaml").write_text(
            yaml.dump({"voicelive": {"api_key": "secret"}})
        )

        loader = ConfigLoader(global_config_dir=global_dir, project_root=project)
        config = loader.load({"log_level": "ERROR"})

        assert config.log_level == "ERROR"
        assert config.voicelive.resource_name == "project"
        assert config.voicelive.api_key == "secret"

    def test_yaml_outranks_env(
        self, tmp_config_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test environment variables fill in only what YAML leaves unset."""
        monkeypatch.setenv("REMIND_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("REMIND_VOICELIVE__MODEL", "env-model")
        (tmp_config_dir / "config.yaml").write_text(yaml.dump({"log_level": "WARNING"}))

        config = ConfigLoader(global_config_dir=tmp_config_dir, project_root=None).load()

        assert config.log_level == "WARNING"
        assert config.voicelive.model == "env-model"


class TestFindProjectRoot:
    """Tests for find_project_root."""

    def test_finds_marker(self, tmp_config_dir: Path) -> None:
        """Test the nearest .remind directory is the root."""
        (tmp_config_dir / ".remind").mkdir()
        nested = tmp_config_dir / "a" / "b"
        nested.mkdir(parents=True)
        assert find_project_root(nested) == tmp_config_dir.resolve()
