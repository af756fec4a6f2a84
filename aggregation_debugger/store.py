"""
Ephemeral MongoDB database management.

Each debugging session works in its own, uniquely named database which is dropped once the session
is over. The database name is generated when the EphemeralStore is created and lives only as long
as that store.
"""

import logging
import os
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote_plus

# Third-party imports
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from .errors import StoreConnectionError

# Setup logger for this module
logger = logging.getLogger(__name__)

DATABASE_NAME_PREFIX = 'mongo_aggregation_debugger'
COLLECTION_NAME = 'documents'

DEFAULT_MONGO_PARAMS: Dict[str, Any] = {
    'host': 'localhost',
    'port': 27017,
    'username': None,
    'password': None,
    'options': {},
}


def generate_database_name() -> str:
    """
    Generate a database name which is unique across concurrent sessions on the same host
    """
    return f"{DATABASE_NAME_PREFIX}_{os.getpid()}_{time.time_ns()}_{uuid.uuid4().hex[:8]}"


def merge_mongo_params(mongo_params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Overlay the given connection parameters on top of the defaults. Unknown keys are dropped.
    """
    params = dict(DEFAULT_MONGO_PARAMS)
    params['options'] = {}
    for key, value in (mongo_params or {}).items():
        if key in params and value is not None:
            params[key] = value
    params['options'] = dict(params['options'])
    return params


def build_connection_url(mongo_params: Dict[str, Any], database_name: str) -> str:
    """
    Build the MongoDB connection URL for the given parameters and target database
    """
    url = 'mongodb://'

    username = mongo_params.get('username')
    password = mongo_params.get('password')
    if username and password:
        url += f"{quote_plus(str(username))}:{quote_plus(str(password))}@"

    url += mongo_params.get('host') or DEFAULT_MONGO_PARAMS['host']

    port = mongo_params.get('port')
    if port:
        url += f":{port}"

    return f"{url}/{database_name}"


@dataclass
class StoreHandle:
    """
    Open connection to an ephemeral database
    """
    client: Any
    database: Any
    collection: Any


class EphemeralStore:
    """
    Creates and tears down the temporary database used by one debugging session
    """

    def __init__(self,
                 mongo_params: Optional[Dict[str, Any]] = None,
                 client_factory: Callable[..., Any] = AsyncIOMotorClient):
        """
        Initialize with connection parameters

        Args:
            mongo_params: host, port, username, password and options of the MongoDB server
            client_factory: Callable creating the client from a connection URL and the options
        """
        self.mongo_params = merge_mongo_params(mongo_params)
        self.client_factory = client_factory
        self.database_name = generate_database_name()
        self.url = build_connection_url(self.mongo_params, self.database_name)

        logger.debug("Ephemeral store configured:")
        logger.debug("  host: %s", self.mongo_params['host'])
        logger.debug("  port: %s", self.mongo_params['port'])
        logger.debug("  username: %s", self.mongo_params['username'])
        logger.debug("  password: %s", "***" if self.mongo_params['password'] else None)
        logger.debug("  database: %s", self.database_name)

    async def acquire(self) -> StoreHandle:
        """
        Connect to the server and open the ephemeral database

        Raises:
            StoreConnectionError: If the server cannot be reached or rejects the credentials
        """
        client = None
        try:
            client = self.client_factory(self.url, **self.mongo_params['options'])
            # The client connects lazily, so make sure the server is actually there
            await client.server_info()
        except PyMongoError as e:
            if client is not None:
                client.close()
            logger.error("Could not connect to MongoDB at %s: %s", self.mongo_params['host'], e)
            raise StoreConnectionError(f"Could not connect to MongoDB: {e}") from e

        database = client[self.database_name]
        logger.info("Acquired ephemeral database %s", self.database_name)
        return StoreHandle(client=client, database=database, collection=database[COLLECTION_NAME])

    async def release(self, handle: StoreHandle) -> None:
        """
        Drop the ephemeral database and close the connection

        Raises:
            StoreConnectionError: If the database could not be dropped
        """
        try:
            await handle.client.drop_database(self.database_name)
        except PyMongoError as e:
            raise StoreConnectionError(
                f"Could not drop ephemeral database {self.database_name}: {e}") from e
        finally:
            handle.client.close()

        logger.info("Dropped ephemeral database %s", self.database_name)
