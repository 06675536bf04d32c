# config_manager.py
import os
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

config_json = Path(__file__).resolve().parent / "config.json"

# Used whenever config.json is missing, unreadable or lacks a key
DEFAULT_SETTINGS = {
    "precision": 100,
    "rounding": "HALF_UP",
    "locale": "en_US",
    "trigonometric_mode": "DEG",
    "max_series_iterations": 100000,
    "compiled_cache_size": 512,
    "debug": False,
}


def config_path():
    """Return the settings file in use (EXPRESSION_ENGINE_CONFIG overrides the packaged one)."""
    override = os.environ.get("EXPRESSION_ENGINE_CONFIG")
    if override:
        return Path(override)
    return config_json


def load_setting_value(key_value):
    settings_dict = dict(DEFAULT_SETTINGS)
    try:
        with open(config_path(), 'r', encoding= 'utf-8') as f:
            settings_dict.update(json.load(f))

    except (FileNotFoundError, json.JSONDecodeError) as e:
        logger.debug("Using default settings (%s)", e)


    if key_value == "all":
        return settings_dict

    else:
        return settings_dict.get(key_value)


def save_setting(settings_dict):
    try:
        with open (config_path(), 'w', encoding= 'utf-8') as f:
            json.dump(settings_dict, f, indent=4, ensure_ascii=False)
            return settings_dict

    except (FileNotFoundError, PermissionError) as e:
        logger.warning("Settings could not be saved: %s", e)
        return{}


def update_setting(key_value, value):
    """Change a single setting and write the file back."""
    all_settings = load_setting_value("all")
    all_settings[key_value] = value
    return save_setting(all_settings)





if __name__ == "__main__":
    print(load_setting_value("all"))
    print(load_setting_value("precision"))
