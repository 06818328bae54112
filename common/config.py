from pathlib import Path

from common.exceptions import ConfigError


def load_config(config_file="config.txt"):
    """
    Load configuration from a key = value config file.

    Lines starting with '#' are comments. Repeated 'node = count, cores, memory' lines describe
    groups of worker nodes and are collected, in order, under config["nodes"].
    """
    config = {}
    node_list = []
    # Try to find config file in multiple locations
    config_paths = [
        Path(config_file),  # Current directory
        Path(__file__).parent.parent / config_file,  # Repository root
    ]

    config_path = None
    for path in config_paths:
        if path.exists():
            config_path = path
            break

    if config_path is None:
        raise FileNotFoundError(f"Config file '{config_file}' not found in any of: {[str(p) for p in config_paths]}")

    with open(config_path, 'r') as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith('#'):
                continue

            if '=' not in line:
                raise ConfigError(f"{config_path}:{line_number}: expected 'key = value', got '{line}'")

            key, value = line.split('=', 1)
            key = key.strip()
            value = value.strip()
            if key == "node":
                parts = [p.strip() for p in value.split(",")]
                if len(parts) != 3:
                    raise ConfigError(f"{config_path}:{line_number}: node lines need 'count, cores, memory', got '{value}'")
                node_list.append(parts)
            else:
                config[key] = value

    config["nodes"] = node_list
    return config


def get_int(config, key, default):
    value = config.get(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"Config value '{key}' must be an integer, got '{value}'") from None


def get_bool(config, key, default):
    value = config.get(key)
    if value is None or value == "":
        return default
    value = value.lower()
    if value in ("true", "yes", "1"):
        return True
    if value in ("false", "no", "0"):
        return False
    raise ConfigError(f"Config value '{key}' must be true or false, got '{value}'")
