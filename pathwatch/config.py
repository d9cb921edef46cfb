import os

import toml
import yaml

from pathwatch.exceptions import ConfigError

DEFAULT_CONFIG_PATH = "./config.toml"
ENV_CONFIG_DIR_VAR = "PATHWATCH_CONFIG_DIR"

DEFAULTS = {
    "logging": {
        "level": "WARNING",
        "log_dir": "",
        "log_filename": "pathwatch.log",
    },
    "watcher": {
        "backend": "auto",
        "dump_signal": "SIGUSR1",
        "preload": "",
    },
}


def _merge(defaults, overrides):
    merged = {}
    for key, value in defaults.items():
        if isinstance(value, dict):
            merged[key] = _merge(value, overrides.get(key) or {})
        else:
            merged[key] = overrides.get(key, value)
    for key, value in overrides.items():
        merged.setdefault(key, value)
    return merged


def load_config(cli_config_path=None):
    """
    Load configuration from a TOML file, filled in with defaults.

    Precedence:
      1. cli_config_path if provided; it must exist.
      2. Environment variable PATHWATCH_CONFIG_DIR (looking for config.toml).
      3. Default to ./config.toml.

    A missing file in cases 2 and 3 is not an error: the defaults apply.

    Returns:
        dict: The configuration settings.
    """
    if cli_config_path:
        config_path = cli_config_path
        if not os.path.exists(config_path):
            raise ConfigError(f"Configuration file not found: {config_path}")
    elif os.environ.get(ENV_CONFIG_DIR_VAR):
        config_path = os.path.join(os.environ[ENV_CONFIG_DIR_VAR], "config.toml")
    else:
        config_path = DEFAULT_CONFIG_PATH

    config_data = {}
    if os.path.exists(config_path):
        try:
            with open(config_path, "r") as f:
                config_data = toml.load(f)
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigError(f"Error reading configuration {config_path}: {e}") from e
        config_data["__config_path__"] = config_path

    return _merge(DEFAULTS, config_data)


def load_watch_list(watch_list_path):
    """
    Load the paths to preload from a YAML file.

    The file holds a ``watch_items`` list of paths.

    Args:
        watch_list_path (str): Path to the YAML file.

    Returns:
        list: Paths in file order.
    """
    if not os.path.exists(watch_list_path):
        raise ConfigError(f"Watch list file not found: {watch_list_path}")
    try:
        with open(watch_list_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Error reading watch list {watch_list_path}: {e}") from e

    items = data.get("watch_items", []) if isinstance(data, dict) else []
    if not isinstance(items, list):
        raise ConfigError(f"'watch_items' must be a list in {watch_list_path}")
    return [str(item) for item in items]


def load_watch_lists(path):
    """
    Load preload paths from a YAML file or a directory containing YAML files.
    If a directory is provided, its .yaml/.yml files are loaded in name order
    and their paths concatenated.

    Args:
        path (str): Path to a YAML file or directory.

    Returns:
        list: Paths to watch before the control stream is read.
    """
    if os.path.isdir(path):
        paths = []
        for filename in sorted(os.listdir(path)):
            if filename.endswith((".yaml", ".yml")):
                paths.extend(load_watch_list(os.path.join(path, filename)))
        return paths
    else:
        return load_watch_list(path)
