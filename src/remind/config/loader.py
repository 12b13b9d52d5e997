"""
Configuration loader with hierarchy support.

Hierarchy (lowest to highest priority):
1. Defaults (built into schema)
2. Environment variables (REMIND_*)
3. Global config (~/.remind/config.yaml)
4. Project config (.remind/config.yaml)
5. Local config (.remind/config.local.yaml) - gitignored, holds credentials
6. CLI arguments
"""

from pathlib import Path
from typing import Any

import yaml

from remind.config.schema import RemindConfig


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Override dictionary (takes precedence)

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load a YAML mapping (empty if the file is missing or not a mapping)."""
    if not path.exists():
        return {}

    with open(path) as f:
        content = yaml.safe_load(f)
    return content if isinstance(content, dict) else {}


def find_project_root(start: Path | None = None) -> Path | None:
    """Find the nearest directory holding a .remind directory or .git."""
    current = (start or Path.cwd()).resolve()

    while current != current.parent:
        if (current / ".remind").is_dir() or (current / ".git").is_dir():
            return current
        current = current.parent

    return None


class ConfigLoader:
    """Configuration loader with hierarchy support."""

    def __init__(
        self,
        global_config_dir: Path | None = None,
        project_root: Path | None = None,
    ) -> None:
        """
        Initialize configuration loader.

        Args:
            global_config_dir: Global config directory (default: ~/.remind)
            project_root: Project root (auto-detected if None)
        """
        self.global_config_dir = (global_config_dir or Path("~/.remind")).expanduser()
        self.project_root = project_root or find_project_root()

    def config_paths(self) -> list[Path]:
        """YAML layers in merge order."""
        paths = [self.global_config_dir / "config.yaml"]
        if self.project_root:
            paths.append(self.project_root / ".remind" / "config.yaml")
            paths.append(self.project_root / ".remind" / "config.local.yaml")
        return paths

    def load(self, cli_overrides: dict[str, Any] | None = None) -> RemindConfig:
        """
        Load configuration with full hierarchy.

        Args:
            cli_overrides: CLI argument overrides

        Returns:
            Merged configuration
        """
        config: dict[str, Any] = {}

        for path in self.config_paths():
            config = deep_merge(config, load_yaml_config(path))

        if cli_overrides:
            config = deep_merge(config, cli_overrides)

        # Pydantic fills REMIND_* env vars under the explicit values
        return RemindConfig(**config)


def load_config(cli_overrides: dict[str, Any] | None = None) -> RemindConfig:
    """Load configuration from the default locations."""
    return ConfigLoader().load(cli_overrides)
