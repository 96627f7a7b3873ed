import os

from pydantic import ValidationError

from merkledrop.errors import BadConfigException
from merkledrop.models import Config

CONFIG_FILE_NAME = "epoch-conf.json"


def resolve_config_path(path: str) -> str:
    """Accept either the config file itself or the directory that holds it"""
    if os.path.isdir(path):
        return os.path.join(path, CONFIG_FILE_NAME)
    return path


def load_conf(path: str) -> Config:
    """Loads an existing config from file"""
    config_path = resolve_config_path(path)
    if not os.path.exists(config_path):
        raise BadConfigException(f"No config found at {config_path}")

    with open(config_path) as f:
        raw = f.read()

    try:
        return Config.model_validate_json(raw)
    except ValidationError as e:
        raise BadConfigException(f"Invalid config at {config_path}: {e}") from e
