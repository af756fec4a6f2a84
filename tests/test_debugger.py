import asyncio
import io

import pytest
from mongomock_motor import AsyncMongoMockClient

from aggregation_debugger import (AggregationDebugger, InvalidInputError, InvalidPipelineError,
                                  StageExecutionError)
from aggregation_debugger.debugger import stage_operator
from conftest import PIPELINE, RECORDS


@pytest.fixture
def mad():
    return AggregationDebugger(client_factory=AsyncMongoMockClient)


def test_stages_returns_every_stage(mad, records, pipeline):
    results = asyncio.run(mad.stages(records, pipeline))

    assert len(results) == 4

    assert results[0]['query'] == pipeline[:1]
    assert len(results[0]['results']) == 1
    assert results[0]['results'][0]['test'] is True

    assert results[1]['query'] == pipeline[:2]
    assert len(results[1]['results']) == 1
    assert 'test' not in results[1]['results'][0]

    assert results[2]['query'] == pipeline[:3]
    assert len(results[2]['results']) == 3

    assert results[3]['query'] == pipeline
    assert len(results[3]['results']) == 1
    assert results[3]['results'][0]['_id'] == 'bar'
    assert results[3]['results'][0]['sum'] == 6


def test_exec_returns_final_results(mad, records, pipeline):
    results = asyncio.run(mad.exec(records, pipeline))

    assert len(results) == 1
    assert results[0]['_id'] == 'bar'
    assert results[0]['sum'] == 6


def test_stages_with_empty_pipeline(mad, records):
    assert asyncio.run(mad.stages(records, [])) == []


def test_stages_does_not_modify_records(mad, records, pipeline):
    asyncio.run(mad.stages(records, pipeline))

    assert all('_id' not in record for record in records)


def test_stages_invalid_records(mad, pipeline):
    with pytest.raises(InvalidInputError):
        asyncio.run(mad.stages(None, pipeline))


def test_stages_invalid_pipeline(mad, records):
    with pytest.raises(InvalidPipelineError):
        asyncio.run(mad.stages(records, 'test'))


def test_exec_runs_engine_once(engine, records, pipeline):
    debugger = AggregationDebugger(client_factory=engine.client_factory)

    asyncio.run(debugger.exec(records, pipeline))

    aggregations = [value for name, value in engine.events if name == 'aggregate']
    assert aggregations == [pipeline]
    assert engine.names().count('drop_database') == 1


def test_each_call_uses_a_new_database(engine, records, pipeline):
    debugger = AggregationDebugger(client_factory=engine.client_factory)

    asyncio.run(debugger.exec(records, pipeline))
    asyncio.run(debugger.exec(records, pipeline))

    dropped = [value for name, value in engine.events if name == 'drop_database']
    assert len(set(dropped)) == 2


def test_log_output(records, pipeline):
    stream = io.StringIO()
    debugger = AggregationDebugger(client_factory=AsyncMongoMockClient, stream=stream)

    asyncio.run(debugger.log(records, pipeline))

    output = stream.getvalue()
    assert output.startswith("Mongo aggregation debugger [Start]\n")
    assert output.rstrip().endswith("Mongo aggregation debugger [End]")
    assert "Stage 1  $match" in output
    assert "Stage 4  $group" in output
    assert "Results" not in output
    assert "'sum': 6" in output


def test_log_output_with_query(records, pipeline):
    stream = io.StringIO()
    debugger = AggregationDebugger(client_factory=AsyncMongoMockClient, stream=stream)

    asyncio.run(debugger.log(records, pipeline, show_query=True))

    output = stream.getvalue()
    assert output.count("Results") == 4
    assert "'$unwind': '$array'" in output


def test_log_does_not_print_end_banner_on_failure(engine, records, pipeline):
    engine.fail_aggregate_at = 0
    stream = io.StringIO()
    debugger = AggregationDebugger(client_factory=engine.client_factory, stream=stream)

    with pytest.raises(StageExecutionError):
        asyncio.run(debugger.log(records, pipeline))

    assert "[End]" not in stream.getvalue()


@pytest.mark.parametrize('bad_records, bad_pipeline', [
    (None, PIPELINE),
    ('text', PIPELINE),
    (RECORDS, 'test'),
    (RECORDS, None),
])
def test_log_writes_nothing_for_invalid_arguments(engine, bad_records, bad_pipeline):
    stream = io.StringIO()
    debugger = AggregationDebugger(client_factory=engine.client_factory, stream=stream)

    with pytest.raises((InvalidInputError, InvalidPipelineError)):
        asyncio.run(debugger.log(bad_records, bad_pipeline))

    assert stream.getvalue() == ''
    assert engine.clients == []


@pytest.mark.parametrize('sub_pipeline, expected', [
    ([{'$match': {}}, {'$group': {}}], '$group'),
    ([{}], '<unknown>'),
    (['$match'], '<unknown>'),
    ([], '<unknown>'),
])
def test_stage_operator(sub_pipeline, expected):
    assert stage_operator(sub_pipeline) == expected
