"""
Mongo aggregation debugger.

Provides three ways of looking at what an aggregation pipeline does to a set of documents:

    log     - prints each stage's results to a text stream
    stages  - returns the query and results of each stage
    exec    - returns only the results of the full pipeline

Each of them runs the pipeline against a temporary database which is created for the call and
dropped at its end.
"""

import logging
import sys
from collections.abc import Mapping
from pprint import pformat
from typing import Any, Callable, Dict, List, Optional, TextIO

# Third-party imports
from motor.motor_asyncio import AsyncIOMotorClient

from .executor import StagedExecutor, validate_arguments
from .store import EphemeralStore, merge_mongo_params

# Setup logger for this module
logger = logging.getLogger(__name__)


def stage_operator(sub_pipeline: List[Dict[str, Any]]) -> str:
    """
    Return the operator (e.g. '$match') of the last stage of a sub-pipeline
    """
    if sub_pipeline:
        last_stage = sub_pipeline[-1]
        if isinstance(last_stage, Mapping) and last_stage:
            return str(next(iter(last_stage)))
    return '<unknown>'


class AggregationDebugger:
    """
    Main class for debugging MongoDB aggregation pipelines
    """

    def __init__(self,
                 mongo_params: Optional[Dict[str, Any]] = None,
                 client_factory: Callable[..., Any] = AsyncIOMotorClient,
                 stream: Optional[TextIO] = None):
        """
        Initialize with connection parameters

        Args:
            mongo_params: Dictionary with the optional keys host (default 'localhost'),
                          port (default 27017), username, password and options (keyword
                          arguments for the MongoDB client)
            client_factory: Callable creating the MongoDB client
            stream: Text stream the log mode writes to (default: sys.stdout)
        """
        self.mongo_params = merge_mongo_params(mongo_params)
        self.client_factory = client_factory
        self.stream = stream

        logger.debug("Initializing AggregationDebugger for %s:%s", self.mongo_params['host'],
                     self.mongo_params['port'])

    def _create_store(self) -> EphemeralStore:
        return EphemeralStore(self.mongo_params, client_factory=self.client_factory)

    def _write(self, text: str = '') -> None:
        print(text, file=self.stream or sys.stdout)

    async def _run(self, records, pipeline, before_hook=None, after_hook=None, skip_stages=False):
        executor = StagedExecutor(self._create_store)
        await executor.run(records,
                           pipeline,
                           before_hook=before_hook,
                           after_hook=after_hook,
                           skip_stages=skip_stages)

    async def log(self, records: Any, pipeline: Any, show_query: bool = False) -> None:
        """
        Logging mode, writes the results of each stage to the output stream

        Args:
            records: A document or a list of documents the aggregation is performed on
            pipeline: The aggregation pipeline
            show_query: Also write the sub-pipeline run for each stage
        """

        def before_each(sub_pipeline, index):
            self._write(f"Stage {index + 1}  {stage_operator(sub_pipeline)}")
            if show_query:
                self._write(pformat(sub_pipeline))
                self._write()
                self._write("Results")

        def after_each(results, index):
            self._write(pformat(results))
            self._write()

        # Nothing is written for arguments that would be rejected
        validate_arguments(records, pipeline)

        self._write("Mongo aggregation debugger [Start]")
        await self._run(records, pipeline, before_each, after_each)
        self._write("Mongo aggregation debugger [End]")

    async def stages(self, records: Any, pipeline: Any) -> List[Dict[str, Any]]:
        """
        Programmatic mode, returns the query and the results of each aggregation stage

        Returns:
            One {'query': sub_pipeline, 'results': documents} entry per stage, in stage order
        """
        output = []

        def before_each(sub_pipeline, index):
            output.append({'query': sub_pipeline})

        def after_each(results, index):
            output[index]['results'] = results

        await self._run(records, pipeline, before_each, after_each)
        return output

    async def exec(self, records: Any, pipeline: Any) -> Optional[List[Dict[str, Any]]]:
        """
        Exec mode, runs only the full pipeline and returns its results
        """
        output = None

        def after_each(results, index):
            nonlocal output
            output = results

        await self._run(records, pipeline, after_hook=after_each, skip_stages=True)
        return output
