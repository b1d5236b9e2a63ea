"""
MongoDB manager tests with mocked PyMongo and Motor clients: lazy connection, health
checks, index creation and application wiring without injected repositories.
"""

import pytest
from pymongo import ASCENDING
from pymongo.errors import ServerSelectionTimeoutError

from src.app import create_app
from src.data import ConnectionException, MongoDBManager, RepositoryFactory, get_mongodb_manager


@pytest.fixture
def mongo_client_class(mocker):
    return mocker.patch('src.data.mongodb.MongoClient')


class TestMongoDBManager:

    def test_client_is_created_lazily(self, mongo_client_class):
        manager = MongoDBManager('mongodb://db:27017', 'commerce_test', server_selection_timeout_ms=250)
        mongo_client_class.assert_not_called()

        assert manager.client is manager.client
        mongo_client_class.assert_called_once_with(
            'mongodb://db:27017', tz_aware=True, serverSelectionTimeoutMS=250
        )

    def test_collections_come_from_the_configured_database(self, mocker):
        client = mocker.MagicMock()
        manager = MongoDBManager(database_name='commerce_test', client=client)

        collection = manager.get_collection('users')

        client.__getitem__.assert_called_once_with('commerce_test')
        assert collection is client.__getitem__.return_value.__getitem__.return_value

    def test_health_check(self, mocker):
        client = mocker.MagicMock()
        status = MongoDBManager(client=client).health_check()

        client.admin.command.assert_called_once_with('ping')
        assert status['status'] == 'healthy'
        assert 'latency_ms' in status

    def test_health_check_failure(self, mocker):
        client = mocker.MagicMock()
        client.admin.command.side_effect = ServerSelectionTimeoutError('no servers')

        status = MongoDBManager(client=client).health_check()

        assert status['status'] == 'unhealthy'
        assert status['error_type'] == 'ServerSelectionTimeoutError'

    def test_create_index(self, mocker):
        manager = MongoDBManager(client=mocker.MagicMock())
        collection = mocker.MagicMock()
        collection.create_index.return_value = 'email_1'
        mocker.patch.object(manager, 'get_collection', return_value=collection)

        assert manager.create_index('users', 'email') == 'email_1'
        collection.create_index.assert_called_once_with([('email', ASCENDING)])

    def test_create_index_failure(self, mocker):
        manager = MongoDBManager(client=mocker.MagicMock())
        collection = mocker.MagicMock()
        collection.create_index.side_effect = ServerSelectionTimeoutError('no servers')
        mocker.patch.object(manager, 'get_collection', return_value=collection)

        with pytest.raises(ConnectionException):
            manager.create_index('users', 'id', unique=True)

    def test_async_client_is_created_lazily(self, mocker):
        motor_client_class = mocker.patch('src.data.mongodb.AsyncIOMotorClient')
        manager = MongoDBManager('mongodb://db:27017', 'commerce_test', server_selection_timeout_ms=250)
        motor_client_class.assert_not_called()

        collection = manager.get_async_collection('orders')

        motor_client_class.assert_called_once_with(
            'mongodb://db:27017', tz_aware=True, serverSelectionTimeoutMS=250
        )
        database = motor_client_class.return_value.__getitem__
        database.assert_called_once_with('commerce_test')
        database.return_value.__getitem__.assert_called_once_with('orders')
        assert collection is database.return_value.__getitem__.return_value
        assert manager.async_client is motor_client_class.return_value

    def test_close(self, mocker):
        client = mocker.MagicMock()
        async_client = mocker.MagicMock()
        manager = MongoDBManager(client=client, async_client=async_client)

        manager.close()

        client.close.assert_called_once_with()
        async_client.close.assert_called_once_with()


class TestMongoBackedApplication:

    def test_factory_is_wired_from_config(self, mongo_client_class):
        app = create_app('testing', MONGODB_URI='mongodb://db:27017')

        assert isinstance(app.extensions['repositories'], RepositoryFactory)
        assert app.extensions['mongodb'] is get_mongodb_manager()
        assert app.extensions['mongodb'].uri == 'mongodb://db:27017'
        mongo_client_class.assert_not_called()

    def test_health_reports_unreachable_database(self, mongo_client_class):
        mongo_client_class.return_value.admin.command.side_effect = ServerSelectionTimeoutError('no servers')
        app = create_app('testing')

        response = app.test_client().get('/health')

        assert response.status_code == 503
        assert response.get_json()['dependencies']['mongodb']['status'] == 'unhealthy'

    def test_index_failure_does_not_stop_startup(self, mongo_client_class):
        database = mongo_client_class.return_value.__getitem__.return_value
        database.__getitem__.return_value.create_index.side_effect = ServerSelectionTimeoutError('no servers')

        app = create_app('testing', MONGODB_ENSURE_INDEXES=True)

        assert isinstance(app.extensions['repositories'], RepositoryFactory)
