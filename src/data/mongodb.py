"""
MongoDB Connection Management

Owns the two clients of the data layer: a synchronous PyMongo client for
startup work and health checks, and a Motor client for the repositories
awaited by the business services. Both are created lazily on first use, so
building the Flask application never blocks on the database; connectivity is
checked by ``health_check`` and by the first real operation.

Usage:
    manager = init_mongodb_manager(app)
    users = manager.get_async_collection('users')
"""

import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from src.data.exceptions import DatabaseOperationType, handle_database_error

logger = structlog.get_logger("data.mongodb")

DEFAULT_MONGODB_URI = 'mongodb://localhost:27017'
DEFAULT_DATABASE_NAME = 'commerce'
DEFAULT_SERVER_SELECTION_TIMEOUT_MS = 5000


class MongoDBManager:
    """
    Lazily connected MongoDB clients and database handles.

    Each client is created once under a lock; gunicorn threads share them.
    """

    def __init__(
        self,
        uri: str = DEFAULT_MONGODB_URI,
        database_name: str = DEFAULT_DATABASE_NAME,
        server_selection_timeout_ms: int = DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
        client: Optional[MongoClient] = None,
        async_client: Optional[AsyncIOMotorClient] = None
    ):
        """
        Args:
            uri: MongoDB connection string
            database_name: Target database name
            server_selection_timeout_ms: How long the drivers wait for a server
            client: Pre-built PyMongo client (tests inject a mock here)
            async_client: Pre-built Motor client
        """
        self.uri = uri
        self.database_name = database_name
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self._client = client
        self._async_client = async_client
        self._lock = threading.Lock()

    @property
    def client(self) -> MongoClient:
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = MongoClient(
                        self.uri,
                        tz_aware=True,
                        serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    )
                    logger.info(
                        "MongoDB client created",
                        database_name=self.database_name,
                        server_selection_timeout_ms=self.server_selection_timeout_ms
                    )
        return self._client

    @property
    def async_client(self) -> AsyncIOMotorClient:
        if self._async_client is None:
            with self._lock:
                if self._async_client is None:
                    self._async_client = AsyncIOMotorClient(
                        self.uri,
                        tz_aware=True,
                        serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    )
                    logger.info("Motor async client created", database_name=self.database_name)
        return self._async_client

    @property
    def database(self) -> Database:
        return self.client[self.database_name]

    def get_async_collection(self, collection_name: str) -> AsyncIOMotorCollection:
        """Motor collection used by the repositories."""
        return self.async_client[self.database_name][collection_name]

    def get_collection(self, collection_name: str) -> Collection:
        """
        Get MongoDB collection instance.

        Args:
            collection_name: Name of the MongoDB collection

        Returns:
            Collection: PyMongo collection instance
        """
        return self.database[collection_name]

    def create_index(
        self,
        collection_name: str,
        keys: Union[str, List[Tuple[str, int]]],
        **kwargs
    ) -> str:
        """Create an index, wrapping driver failures in ``DatabaseException``."""
        if isinstance(keys, str):
            keys = [(keys, ASCENDING)]
        try:
            index_name = self.get_collection(collection_name).create_index(keys, **kwargs)
        except PyMongoError as e:
            raise handle_database_error(
                e, DatabaseOperationType.WRITE, self.database_name, collection_name
            )
        logger.info("Index ensured", collection=collection_name, index_name=index_name)
        return index_name

    def ensure_indexes(self, specs: Iterable[Tuple[str, Union[str, List[Tuple[str, int]]], Dict[str, Any]]]) -> None:
        for collection_name, keys, options in specs:
            self.create_index(collection_name, keys, **options)

    def health_check(self) -> Dict[str, Any]:
        """
        Ping the server.

        Returns:
            Dict[str, Any]: ``status`` is ``healthy`` or ``unhealthy``
        """
        health_status = {
            'status': 'unknown',
            'database': self.database_name,
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }

        try:
            start_time = time.perf_counter()
            self.client.admin.command('ping')
            health_status['latency_ms'] = round((time.perf_counter() - start_time) * 1000, 2)
            health_status['status'] = 'healthy'
        except PyMongoError as e:
            logger.warning("MongoDB health check failed", error=str(e), error_type=type(e).__name__)
            health_status['status'] = 'unhealthy'
            health_status['error_type'] = type(e).__name__

        return health_status

    def close(self) -> None:
        if self._async_client is not None:
            self._async_client.close()
            self._async_client = None
        if self._client is not None:
            self._client.close()
            self._client = None
        logger.info("MongoDB clients closed", database_name=self.database_name)


_mongodb_manager: Optional[MongoDBManager] = None


def init_mongodb_manager(app=None, **kwargs) -> MongoDBManager:
    """
    Initialize the global MongoDB manager from the Flask config.

    Args:
        app: Flask application supplying MONGODB_* settings
        **kwargs: Explicit ``MongoDBManager`` arguments, overriding the config

    Returns:
        MongoDBManager: Global MongoDB manager instance
    """
    global _mongodb_manager

    settings = {}
    if app is not None:
        settings = {
            'uri': app.config.get('MONGODB_URI', DEFAULT_MONGODB_URI),
            'database_name': app.config.get('MONGODB_DATABASE', DEFAULT_DATABASE_NAME),
            'server_selection_timeout_ms': app.config.get(
                'MONGODB_SERVER_SELECTION_TIMEOUT_MS', DEFAULT_SERVER_SELECTION_TIMEOUT_MS
            ),
        }
    settings.update(kwargs)

    _mongodb_manager = MongoDBManager(**settings)
    if app is not None:
        app.extensions['mongodb'] = _mongodb_manager
    logger.info("Global MongoDB manager initialized", database_name=_mongodb_manager.database_name)
    return _mongodb_manager


def get_mongodb_manager() -> MongoDBManager:
    """
    Get global MongoDB manager instance.

    Raises:
        RuntimeError: If manager not initialized
    """
    if _mongodb_manager is None:
        raise RuntimeError("MongoDB manager not initialized. Call init_mongodb_manager() first.")
    return _mongodb_manager


__all__ = ['MongoDBManager', 'init_mongodb_manager', 'get_mongodb_manager']
