# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import copy
import logging
from pathlib import Path
from typing import Dict, Optional, Union

# Third-Party Imports
import yaml

# Local Imports
from contrast_16s import constants

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger(constants.LOGGER_NAME)

# ==================================== FUNCTIONS ===================================== #

def resolve_relative_paths(config: Dict, config_dir: Path) -> Dict:
    """Converts any relative paths in the configuration to absolute paths based on
    the directory of the config file."""
    for key, value in config.items():
        if isinstance(value, str):
            if value.startswith("./") or value.startswith("../"):
                config[key] = (config_dir / value).resolve()
        elif isinstance(value, dict):
            config[key] = resolve_relative_paths(value, config_dir)
    return config


def merge_config(base: Dict, override: Dict) -> Dict:
    """Recursively merge ``override`` into a copy of ``base``.

    Nested sections are merged key by key so a user config only needs to name
    the values it changes. Non-dict values in ``override`` replace the base.
    """
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_config(
    config_path: Optional[Union[str, Path]] = constants.DEFAULT_CONFIG_PATH
) -> Dict:
    """Load the YAML configuration and fill unset values from the defaults.

    Args:
        config_path: Path to a YAML file. ``None`` returns the defaults.

    Returns:
        Configuration dictionary.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        ValueError:        If the file does not hold a YAML mapping.
    """
    if config_path is None:
        return copy.deepcopy(constants.DEFAULT_CONFIG)

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as file:
        user_config = yaml.safe_load(file) or {}
    if not isinstance(user_config, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    config = merge_config(constants.DEFAULT_CONFIG, user_config)
    config = resolve_relative_paths(config, config_path.resolve().parent)
    logger.debug(f"Loaded configuration from {config_path}")
    return config
