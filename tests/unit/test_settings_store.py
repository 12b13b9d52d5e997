"""Tests for persisted voice settings."""

from pathlib import Path

import yaml
from remind.config.schema import VoiceSettings
from remind.config.settings_store import SettingsStore


class TestSettingsStore:
    """Tests for SettingsStore."""

    def test_defaults_without_file(self, tmp_config_dir: Path) -> None:
        """Test defaults are used when nothing is persisted."""
        store = SettingsStore(tmp_config_dir / "voice_settings.yaml")
        assert store.settings.speaking_rate == 1.0
        assert not store.path.exists()

    def test_configured_defaults(self, tmp_config_dir: Path) -> None:
        """Test configured defaults seed the store."""
        store = SettingsStore(
            tmp_config_dir / "voice_settings.yaml", VoiceSettings(voice_name="en-GB-SoniaNeural")
        )
        assert store.settings.voice_name == "en-GB-SoniaNeural"

    def test_update_persists(self, tmp_config_dir: Path) -> None:
        """Test a rate change is written and survives a reload."""
        path = tmp_config_dir / "voice_settings.yaml"
        SettingsStore(path).update_speaking_rate(1.3)

        assert yaml.safe_load(path.read_text()) == {"speaking_rate": 1.3}
        assert SettingsStore(path).settings.speaking_rate == 1.3

    def test_update_clamps(self, tmp_config_dir: Path) -> None:
        """Test out-of-range rates are clamped before saving."""
        store = SettingsStore(tmp_config_dir / "voice_settings.yaml")
        assert store.update_speaking_rate(0.1).speaking_rate == 0.5
        assert store.update_speaking_rate(4.0).speaking_rate == 1.5

    def test_persisted_value_clamped_on_load(self, tmp_config_dir: Path) -> None:
        """Test a hand-edited rate outside the range is clamped."""
        path = tmp_config_dir / "voice_settings.yaml"
        path.write_text("speaking_rate: 3.0\n")
        assert SettingsStore(path).settings.speaking_rate == 1.5

    def test_persisted_over_defaults(self, tmp_config_dir: Path) -> None:
        """Test persisted fields override defaults, others keep them."""
        path = tmp_config_dir / "voice_settings.yaml"
        path.write_text("speaking_rate: 0.8\nvoice_name: ignored\n")
        store = SettingsStore(path, VoiceSettings(voice_name="configured"))

        assert store.settings.speaking_rate == 0.8
        assert store.settings.voice_name == "configured"

    def test_corrupt_file_uses_defaults(self, tmp_config_dir: Path) -> None:
        """Test unreadable YAML falls back to defaults."""
        path = tmp_config_dir / "voice_settings.yaml"
        path.write_text("speaking_rate: [unclosed\n")
        assert SettingsStore(path).settings.speaking_rate == 1.0

    def test_invalid_value_uses_defaults(self, tmp_config_dir: Path) -> None:
        """Test a non-numeric rate falls back to defaults."""
        path = tmp_config_dir / "voice_settings.yaml"
        path.write_text("speaking_rate: fast\n")
        assert SettingsStore(path).settings.speaking_rate == 1.0

    def test_snapshot_is_isolated(self, tmp_config_dir: Path) -> None:
        """Test snapshots are not changed by later updates."""
        store = SettingsStore(tmp_config_dir / "voice_settings.yaml")
        before = store.snapshot()
        store.update_speaking_rate(1.4)

        assert before.speaking_rate == 1.0
        assert store.snapshot().speaking_rate == 1.4
