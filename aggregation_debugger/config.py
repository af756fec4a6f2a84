"""
Configuration of the MongoDB connection used by the aggregation debugger.

Connection parameters are layered, each layer overriding the previous one:

1. the built-in defaults (localhost:27017, no credentials)
2. the [mongodb] table of config.toml
3. the MONGODB_HOST, MONGODB_PORT, MONGODB_USERNAME and MONGODB_PASSWORD environment variables
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

# Third-party imports
import tomli

from .errors import InvalidOptionError
from .store import merge_mongo_params

# Setup logger for this module
logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.toml"

ENVIRONMENT_VARIABLES = {
    'host': 'MONGODB_HOST',
    'port': 'MONGODB_PORT',
    'username': 'MONGODB_USERNAME',
    'password': 'MONGODB_PASSWORD',
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from TOML file"""
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        logger.debug("Configuration file %s not found, using %s", path, DEFAULT_CONFIG_PATH)
        path = DEFAULT_CONFIG_PATH
        if not path.exists():
            return {}

    try:
        with open(path, 'rb') as f:
            return tomli.load(f)
    except (OSError, tomli.TOMLDecodeError) as e:
        logger.error("Error loading configuration file %s: %s", path, e)
        raise ValueError(f"Could not load configuration from {path}: {e}") from e


def load_mongo_params(config_path: Optional[str] = None,
                      environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Build the MongoDB connection parameters from the defaults, the configuration file and the
    environment

    Raises:
        ValueError: If the configuration file cannot be parsed
        InvalidOptionError: If MONGODB_PORT is not an integer
    """
    environ = os.environ if environ is None else environ

    params = dict(load_config(config_path).get('mongodb', {}))

    for key, variable in ENVIRONMENT_VARIABLES.items():
        value = environ.get(variable)
        if value:
            params[key] = value

    if isinstance(params.get('port'), str):
        try:
            params['port'] = int(params['port'])
        except ValueError as e:
            raise InvalidOptionError(f"Invalid MongoDB port: {params['port']!r}") from e

    return merge_mongo_params(params)
