import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "store_path": ".mindpalace.db",
    "daily_goal": 10,
    # Review scheduling
    "favorite_boost": 1.5,  # multiplier for sections marked favorite
    "favorite_folder_boost": 1.3,  # multiplier for sections under a favorite path
    "favorite_weight": 0.6,  # probability of drawing from the favorite list
    "min_content_length": 50,  # sections with a shorter trimmed body are skipped
    "list_ratio_threshold": 0.7,  # skip sections whose lines are mostly bullets/links
    "shuffle_top_k": 50,
    "cache_seconds": 30,
    # Sync
    "staging_dir": None,  # None = system temp directory
    "preserve_history_on_resync": False,
    "timeout": 30,
    # Progress backup
    "gist_id": None,
}


def load_config(config_path: str = ".mindpalace.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .mindpalace.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")

    return config


def save_config_value(key: str, value, config_path: str = ".mindpalace.yml") -> None:
    """Write one key into the config file, preserving any existing keys."""
    path = Path(config_path)
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing[key] = value
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))
