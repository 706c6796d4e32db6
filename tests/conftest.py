"""Shared fixtures for store and API tests"""

import pytest

from portfolio_api.config import Settings
from portfolio_api.content_store import ContentStore
from portfolio_api.server import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=str(tmp_path / 'data'),
        smtp_host='smtp.example.com',
        contact_email='owner@example.com',
        from_name='Portfolio Site',
    )


@pytest.fixture
def store(settings):
    return ContentStore(settings.data_dir, settings.upload_dir)


@pytest.fixture
def app(settings):
    app = create_app(settings)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
