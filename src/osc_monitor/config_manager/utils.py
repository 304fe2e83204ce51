# config_manager/utils.py
import os
import re
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from loguru import logger
from pydantic import ValidationError

from .main import Config

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")


def read_yaml(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read the specified YAML configuration file with environment variable
    substitution.

    Placeholders of the form ``${VAR_NAME}`` are replaced with the value of
    the environment variable, or an empty string when it is unset.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Dict[str, Any]: The configuration data (empty dict for an empty file).

    Raises:
        FileNotFoundError: If the configuration file is not found.
        yaml.YAMLError: If the file is not valid YAML.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    content = path.read_text(encoding="utf-8")

    def _replace_env_var(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    content = _ENV_VAR_RE.sub(_replace_env_var, content)

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.critical(f"Error parsing YAML file {path}: {e}")
        raise
    return data or {}


def validate_config(config_data: Dict[str, Any]) -> Config:
    """
    Validate configuration data against the Config model.

    Args:
        config_data: Configuration data to validate.

    Returns:
        Config: Validated configuration.

    Raises:
        ValidationError: If the configuration fails validation.
    """
    try:
        return Config.model_validate(config_data)
    except ValidationError as e:
        logger.critical(f"Error validating configuration: {e}")
        raise
