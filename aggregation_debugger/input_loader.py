"""
Loader utilities for the inputs of the aggregation debugger.

This module loads aggregation pipelines and the records to aggregate over from Extended JSON files,
so that values such as {"$oid": ...} or {"$date": ...} are turned into their BSON types.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

# Third-party imports
from bson import json_util

from .errors import InvalidPipelineError

# Setup logger for this module
logger = logging.getLogger(__name__)


def _resolve_path(file_name: str, base_path: Optional[str]) -> Path:
    path = Path(file_name)
    if not path.is_absolute() and base_path:
        path = Path(base_path) / file_name
    return path


def _load_extended_json(file_name: str, base_path: Optional[str]) -> Any:
    path = _resolve_path(file_name, base_path)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            value = json_util.loads(f.read())
        logger.debug("Loaded %s", path)
        return value
    except (OSError, ValueError) as e:
        logger.error("Error loading %s: %s", path, e)
        raise ValueError(f"Could not load {path}: {e}") from e


def load_aggregation_pipeline(pipeline_file: str,
                              base_path: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Load MongoDB aggregation pipeline from an Extended JSON file

    Args:
        pipeline_file: Path to the JSON file containing the aggregation pipeline
        base_path: Base path to resolve relative paths against. If None, relative paths are
                   resolved against the current working directory.

    Returns:
        List of aggregation stages

    Raises:
        ValueError: If the pipeline file cannot be loaded or parsed
        InvalidPipelineError: If the file does not contain a list
    """
    pipeline = _load_extended_json(pipeline_file, base_path)
    if not isinstance(pipeline, list):
        raise InvalidPipelineError(
            f"Pipeline file {pipeline_file} must contain a list of stages, "
            f"got {type(pipeline).__name__}")
    return pipeline


def load_records(records_file: str, base_path: Optional[str] = None) -> Any:
    """
    Load the records to aggregate over from an Extended JSON file

    The file may hold a single document or a list of documents. The content is not validated here.

    Raises:
        ValueError: If the records file cannot be loaded or parsed
    """
    return _load_extended_json(records_file, base_path)
