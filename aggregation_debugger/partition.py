"""
Splitting of an aggregation pipeline into the sub-pipelines run by the debugger.
"""

from typing import Any, Dict, List, Sequence

Stage = Dict[str, Any]


def partition_pipeline(pipeline: Sequence[Stage], skip_stages: bool = False) -> List[List[Stage]]:
    """
    Partition an aggregation pipeline into cumulative sub-pipelines

    Args:
        pipeline: The full aggregation pipeline
        skip_stages: If True, return the full pipeline as the only sub-pipeline

    Returns:
        One new list per stage, the i-th holding the first i + 1 stages. The stage documents are
        shared with the input, the lists are not.
    """
    if skip_stages:
        return [list(pipeline)]

    return [list(pipeline[:index + 1]) for index in range(len(pipeline))]
