"""
Debugger for MongoDB aggregation pipelines.
"""

from .debugger import AggregationDebugger, stage_operator
from .errors import (DebuggerError, InvalidInputError, InvalidOptionError, InvalidPipelineError,
                     SeedingError, StageExecutionError, StoreConnectionError)
from .executor import ExecutorState, StagedExecutor, noop_hook
from .input_loader import load_aggregation_pipeline, load_records
from .partition import partition_pipeline
from .store import DEFAULT_MONGO_PARAMS, EphemeralStore, StoreHandle, build_connection_url

__all__ = [
    'AggregationDebugger',
    'DEFAULT_MONGO_PARAMS',
    'DebuggerError',
    'EphemeralStore',
    'ExecutorState',
    'InvalidInputError',
    'InvalidOptionError',
    'InvalidPipelineError',
    'SeedingError',
    'StageExecutionError',
    'StagedExecutor',
    'StoreConnectionError',
    'StoreHandle',
    'build_connection_url',
    'load_aggregation_pipeline',
    'load_records',
    'noop_hook',
    'partition_pipeline',
    'stage_operator',
]
