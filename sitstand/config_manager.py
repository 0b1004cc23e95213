"""
Configuration manager for persisting coach settings.

Saves/loads SchedulerConfig, BackoffConfig and NudgeConfig to/from JSON.
Defaults are applied once, at load time; components receive complete
config objects and never look up defaults themselves.
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, Optional

from .scheduler_config import SchedulerConfig
from .nudge_config import BackoffConfig, NudgeConfig


class ConfigManager:
    """
    Manages persistence of configuration settings.

    Saves to storage/ui_config.json
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize config manager.

        Args:
            config_path: Path to config file (default: storage/ui_config.json)
        """
        if config_path is None:
            config_path = "storage/ui_config.json"

        self.config_path = Path(config_path)
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

    def save_config(
        self,
        scheduler_config: SchedulerConfig,
        backoff_config: Optional[BackoffConfig] = None,
        nudge_config: Optional[NudgeConfig] = None
    ):
        """
        Save configuration to JSON (atomic write).

        Args:
            scheduler_config: Intervals and behaviour toggles
            backoff_config: Posture alert backoff settings
            nudge_config: Posture nudge settings
        """
        config = {
            "scheduler_config": scheduler_config.to_dict(),
            "backoff_config": (backoff_config or BackoffConfig()).to_dict(),
            "nudge_config": (nudge_config or NudgeConfig()).to_dict()
        }

        temp_file = self.config_path.with_suffix('.tmp')
        with open(temp_file, "w") as f:
            json.dump(config, f, indent=2)
        os.replace(temp_file, self.config_path)

    def load_raw(self) -> Dict[str, Any]:
        """
        Load the raw configuration dictionary.

        Returns:
            Dictionary with scheduler_config, backoff_config, nudge_config
        """
        if not self.config_path.exists():
            return self._get_default_config()

        try:
            with open(self.config_path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            print(f"[CONFIG] Could not read {self.config_path}, using defaults: {e}")
            return self._get_default_config()

        if not isinstance(data, dict):
            return self._get_default_config()

        # Merge over defaults so partially written files still load
        merged = self._get_default_config()
        for section in merged:
            if isinstance(data.get(section), dict):
                merged[section].update(data[section])
        return merged

    def load_config(self):
        """
        Load typed configuration objects.

        Returns:
            Tuple of (SchedulerConfig, BackoffConfig, NudgeConfig)
        """
        data = self.load_raw()
        return (
            SchedulerConfig.from_dict(data["scheduler_config"]),
            BackoffConfig.from_dict(data["backoff_config"]),
            NudgeConfig.from_dict(data["nudge_config"])
        )

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return {
            "scheduler_config": SchedulerConfig().to_dict(),
            "backoff_config": BackoffConfig().to_dict(),
            "nudge_config": NudgeConfig().to_dict()
        }

    def purge_config(self):
        """Delete configuration file."""
        if self.config_path.exists():
            self.config_path.unlink()
