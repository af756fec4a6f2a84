"""
Staged execution of an aggregation pipeline against an ephemeral database.

The executor validates its inputs, acquires an ephemeral database, seeds it with the records and
then runs each sub-pipeline produced by the partitioner, one after the other. Hooks are called
around every run:

    before_hook(sub_pipeline, index)  - before the sub-pipeline is submitted
    after_hook(results, index)        - with the documents returned for it

The ephemeral database is released on every exit path.
"""

import enum
import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional

# Third-party imports
from pymongo.errors import PyMongoError

from .errors import (InvalidInputError, InvalidOptionError, InvalidPipelineError, SeedingError,
                     StageExecutionError)
from .partition import partition_pipeline
from .store import EphemeralStore, StoreHandle

# Setup logger for this module
logger = logging.getLogger(__name__)

Hook = Callable[[Any, int], Any]


def noop_hook(value: Any, index: int) -> None:
    """Default hook, does nothing"""


class ExecutorState(enum.Enum):
    """States of a staged execution"""
    IDLE = 'idle'
    STORE_ACQUIRED = 'store_acquired'
    SEEDING = 'seeding'
    RUNNING = 'running'
    TEARING_DOWN = 'tearing_down'
    DONE = 'done'
    FAILED = 'failed'


def normalize_records(records: Any) -> List[Dict[str, Any]]:
    """
    Turn the records argument into a list of documents

    A single document is wrapped into a one-element list. The documents are shallow-copied, so that
    the `_id` added on insert does not leak back to the caller.

    Raises:
        InvalidInputError: If records is neither a document nor a list/tuple of documents
    """
    if isinstance(records, Mapping):
        records = [records]

    if not isinstance(records, (list, tuple)):
        raise InvalidInputError(f"Invalid records: expected a document or a list of documents, "
                                f"got {type(records).__name__}")

    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise InvalidInputError(
                f"Invalid record at index {index}: expected a document, got {type(record).__name__}")

    return [dict(record) for record in records]


def validate_pipeline(pipeline: Any) -> None:
    """
    Raises:
        InvalidPipelineError: If pipeline is not a list/tuple of stages
    """
    if not isinstance(pipeline, (list, tuple)):
        raise InvalidPipelineError(
            f"Invalid pipeline: expected a list of stages, got {type(pipeline).__name__}")


def validate_arguments(records: Any,
                       pipeline: Any,
                       skip_stages: bool = False) -> List[Dict[str, Any]]:
    """
    Check the arguments of a run without touching the database

    Returns:
        The normalized records

    Raises:
        InvalidOptionError: If skip_stages is not a bool
        InvalidInputError: If records is neither a document nor a list/tuple of documents
        InvalidPipelineError: If pipeline is not a list/tuple of stages
    """
    if not isinstance(skip_stages, bool):
        raise InvalidOptionError(
            f"Invalid skip_stages value: expected a bool, got {type(skip_stages).__name__}")

    documents = normalize_records(records)
    validate_pipeline(pipeline)
    return documents


class StagedExecutor:
    """
    Runs one debugging session. An executor is meant to be used for a single run.
    """

    def __init__(self, store_factory: Callable[[], EphemeralStore]):
        """
        Initialize with the factory creating the ephemeral store for the session
        """
        self.store_factory = store_factory
        self.state = ExecutorState.IDLE
        self.stage_index = None

    def _describe_state(self) -> str:
        if self.state == ExecutorState.RUNNING:
            return f"{self.state.value}({self.stage_index})"
        return self.state.value

    def _transition(self, state: ExecutorState, stage_index: Optional[int] = None) -> None:
        previous = self._describe_state()
        self.state = state
        if stage_index is not None:
            self.stage_index = stage_index
        logger.debug("Executor state %s -> %s", previous, self._describe_state())

    async def run(self,
                  records: Any,
                  pipeline: Any,
                  before_hook: Optional[Hook] = None,
                  after_hook: Optional[Hook] = None,
                  skip_stages: bool = False) -> None:
        """
        Run the pipeline stage by stage against a freshly seeded ephemeral database

        Args:
            records: A document or a list of documents to aggregate over
            pipeline: The aggregation pipeline
            before_hook: Called with (sub_pipeline, index) before each sub-pipeline runs
            after_hook: Called with (results, index) after each sub-pipeline ran
            skip_stages: Run only the full pipeline instead of every cumulative sub-pipeline

        Raises:
            InvalidOptionError, InvalidInputError, InvalidPipelineError: Before anything is run
            StoreConnectionError: If the ephemeral database cannot be acquired or released
            SeedingError: If the records cannot be inserted
            StageExecutionError: If the aggregation of a sub-pipeline fails
        """
        documents = validate_arguments(records, pipeline, skip_stages)

        before_hook = before_hook if callable(before_hook) else noop_hook
        after_hook = after_hook if callable(after_hook) else noop_hook

        sub_pipelines = partition_pipeline(pipeline, skip_stages)

        store = self.store_factory()
        try:
            handle = await store.acquire()
        except Exception:
            self._transition(ExecutorState.FAILED)
            raise
        self._transition(ExecutorState.STORE_ACQUIRED)

        try:
            await self._seed(handle, documents)
            await self._run_stages(handle, sub_pipelines, before_hook, after_hook)
        except Exception as e:
            self._transition(ExecutorState.FAILED)
            try:
                await store.release(handle)
            except Exception as cleanup_error:
                logger.error("Failed to release ephemeral database %s after error: %s",
                             store.database_name, cleanup_error)
                e.cleanup_error = cleanup_error
            raise

        self._transition(ExecutorState.TEARING_DOWN)
        try:
            await store.release(handle)
        except Exception:
            self._transition(ExecutorState.FAILED)
            raise
        self._transition(ExecutorState.DONE)

    async def _seed(self, handle: StoreHandle, documents: List[Dict[str, Any]]) -> None:
        self._transition(ExecutorState.SEEDING)

        if not documents:
            logger.debug("No records to insert, skipping seeding")
            return

        try:
            await handle.collection.insert_many(documents)
        except PyMongoError as e:
            raise SeedingError(f"Could not insert {len(documents)} records: {e}") from e

        logger.debug("Inserted %d records", len(documents))

    async def _run_stages(self, handle: StoreHandle, sub_pipelines: List[list], before_hook: Hook,
                          after_hook: Hook) -> None:
        for index, sub_pipeline in enumerate(sub_pipelines):
            self._transition(ExecutorState.RUNNING, index)
            before_hook(sub_pipeline, index)

            logger.debug("Running stage %d with %d pipeline stages", index + 1,
                         len(sub_pipeline))
            try:
                cursor = handle.collection.aggregate(sub_pipeline)
                results = await cursor.to_list(length=None)
            except PyMongoError as e:
                raise StageExecutionError(index, sub_pipeline, str(e)) from e

            logger.debug("Stage %d returned %d documents", index + 1, len(results))
            after_hook(results, index)
