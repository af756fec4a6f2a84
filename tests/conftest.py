"""
Shared fixtures: the sample data set and a recording stand-in for the MongoDB client.
"""

import copy

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

RECORDS = [{
    'foo': 'bar',
    'test': True,
    'array': [1, 2, 3],
}, {
    'foo': 'bar2',
    'test': False,
    'array': [10, 20],
}]

PIPELINE = [{
    '$match': {
        'test': True
    }
}, {
    '$project': {
        'foo': 1,
        'array': 1
    }
}, {
    '$unwind': '$array'
}, {
    '$group': {
        '_id': '$foo',
        'foo': {
            '$first': '$foo'
        },
        'sum': {
            '$sum': '$array'
        }
    }
}]


@pytest.fixture
def records():
    return copy.deepcopy(RECORDS)


@pytest.fixture
def pipeline():
    return copy.deepcopy(PIPELINE)


class FakeCursor:

    def __init__(self, results):
        self.results = results

    async def to_list(self, length=None):
        return self.results


class FakeCollection:

    def __init__(self, engine):
        self.engine = engine
        self.documents = []

    async def insert_many(self, documents):
        self.engine.events.append(('insert_many', len(documents)))
        if self.engine.fail_insert:
            raise OperationFailure("insert failed")
        for document in documents:
            document.setdefault('_id', len(self.documents))
            self.documents.append(document)

    def aggregate(self, pipeline):
        index = self.engine.aggregate_count
        self.engine.aggregate_count += 1
        self.engine.events.append(('aggregate', list(pipeline)))
        if self.engine.fail_aggregate_at == index:
            raise OperationFailure("unrecognized pipeline stage name")
        return FakeCursor([{'stage_length': len(pipeline)}])


class FakeDatabase:

    def __init__(self, collection):
        self.collection = collection

    def __getitem__(self, name):
        return self.collection


class FakeClient:

    def __init__(self, engine, url, **options):
        self.engine = engine
        self.url = url
        self.options = options
        self.collection = FakeCollection(engine)

    def __getitem__(self, name):
        return FakeDatabase(self.collection)

    async def server_info(self):
        self.engine.events.append(('server_info', self.url))
        if self.engine.fail_connect:
            raise ServerSelectionTimeoutError("localhost:27017: connection refused")
        return {'version': '7.0.0'}

    async def drop_database(self, name):
        self.engine.events.append(('drop_database', name))
        if self.engine.fail_drop:
            raise OperationFailure("drop failed")

    def close(self):
        self.engine.events.append(('close', None))


class FakeEngine:
    """
    Records every call made on the clients it creates. Failures can be switched on per operation.
    """

    def __init__(self):
        self.events = []
        self.clients = []
        self.aggregate_count = 0
        self.fail_connect = False
        self.fail_insert = False
        self.fail_aggregate_at = None
        self.fail_drop = False

    def client_factory(self, url, **options):
        client = FakeClient(self, url, **options)
        self.clients.append(client)
        return client

    def names(self):
        return [name for name, _ in self.events]


@pytest.fixture
def engine():
    return FakeEngine()
