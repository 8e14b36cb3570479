import hashlib
import os
import re
from importlib import resources
from pathlib import Path

import tomli as toml

from refbind import logging as refbind_logging

logger = refbind_logging.get_logger(__name__)

_IDENT_INVALID_RE = re.compile(r"[^0-9A-Za-z_]")


######## Configuration ########
def _merge_configs(config, default_config):
    config_out = {}

    for key, default_value in default_config.items():
        if key in config:
            if isinstance(config[key], dict) and isinstance(default_value, dict):
                config_out[key] = _merge_configs(config[key], default_value)
            elif isinstance(config[key], dict) or isinstance(default_value, dict):
                raise TypeError(f"Type mismatch for key '{key}': "
                                f"config has {type(config[key])}, default_config has {type(default_value)}")
            # Otherwise, config[key] takes precedence
            else:
                config_out[key] = config[key]
        else:
            config_out[key] = default_value

    # Add keys that are only in config
    for key, value in config.items():
        if key not in default_config:
            config_out[key] = value

    return config_out


def load_default_config():
    """Load the bundled default configuration from packaged resources."""
    try:
        resource = resources.files("refbind._resources").joinpath("refbind.default.toml")
        with resource.open("rb") as f:
            return toml.load(f)
    except (FileNotFoundError, ModuleNotFoundError):
        pass

    candidate = Path(__file__).resolve().parent / "_resources" / "refbind.default.toml"
    if candidate.is_file():
        with open(candidate, "rb") as f:
            return toml.load(f)

    raise FileNotFoundError("Could not load _resources/refbind.default.toml")


def try_load_config(config_file=None):
    """Load user configuration merged with defaults.

    Resolution order:
    1. Explicit `config_file` argument.
    2. `REFBIND_CONFIG` environment variable.
    3. `./refbind.toml` relative to current working directory.
    If none are found, return the default config alone.
    """
    default_config = load_default_config()

    def _load_user_config(path: Path) -> dict:
        with open(path, "rb") as f:
            return toml.load(f)

    if config_file:
        candidate = Path(config_file).expanduser()
        if not candidate.is_file():
            raise FileNotFoundError(f"Could not find config file {candidate}")
        user_config = _load_user_config(candidate)
        return _merge_configs(user_config, default_config)

    env_candidate = os.environ.get("REFBIND_CONFIG")
    if env_candidate:
        env_path = Path(env_candidate).expanduser()
        if not env_path.is_file():
            raise FileNotFoundError(f"REFBIND_CONFIG={env_candidate} does not point to a readable file")
        user_config = _load_user_config(env_path)
        return _merge_configs(user_config, default_config)

    cwd_candidate = Path.cwd() / "refbind.toml"
    if cwd_candidate.is_file():
        user_config = _load_user_config(cwd_candidate)
        return _merge_configs(user_config, default_config)

    logger.debug("No user config found; falling back to default configuration only")
    return default_config


######## Naming ########
def short_digest(text: str, length: int = 8) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:length]


def sanitize_identifier(name: str) -> str:
    """Turn an arbitrary name (import path, type key) into a C identifier."""
    sanitized = _IDENT_INVALID_RE.sub("_", name)
    sanitized = re.sub(r"_+", "_", sanitized).strip("_")
    if not sanitized:
        return "_"
    if sanitized[0].isdigit():
        sanitized = f"_{sanitized}"
    return sanitized


def is_exported(name: str) -> bool:
    return bool(name) and name[0].isupper()


######## Output ########
def write_files(output_dir, files: dict[str, str]) -> list[str]:
    """Write every rendered file under ``output_dir``.

    Callers render everything first; this only touches the filesystem once
    all contents exist.
    """
    os.makedirs(output_dir, exist_ok=True)
    written = []
    for name in sorted(files):
        path = os.path.join(output_dir, name)
        path_dir = os.path.dirname(path)
        os.makedirs(path_dir, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(files[name])
        written.append(path)
    return written
