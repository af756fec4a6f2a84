"""
Exceptions raised by the aggregation debugger.

Every error derives from DebuggerError. When the ephemeral database cannot be dropped after an
earlier failure, the earlier failure is raised and the drop failure is attached to it as
`cleanup_error`.
"""


class DebuggerError(Exception):
    """Base class for all aggregation debugger errors"""

    cleanup_error = None


class InvalidInputError(DebuggerError):
    """The records are neither a document nor a sequence of documents"""


class InvalidPipelineError(DebuggerError):
    """The pipeline is not a list of stages"""


class InvalidOptionError(DebuggerError):
    """An option was given a value of the wrong type"""


class StoreConnectionError(DebuggerError, ConnectionError):
    """The ephemeral database could not be acquired or released"""


class SeedingError(DebuggerError):
    """The records could not be inserted into the ephemeral database"""


class StageExecutionError(DebuggerError):
    """
    The aggregation failed for one stage of the pipeline

    Attributes:
        stage_index: 0-based index of the stage whose sub-pipeline failed
        pipeline: The sub-pipeline that was submitted
    """

    def __init__(self, stage_index: int, pipeline: list, message: str):
        super().__init__(f"Stage {stage_index + 1} failed: {message}")
        self.stage_index = stage_index
        self.pipeline = pipeline
