"""
Pytest configuration and shared fixtures for test suite

Provides Flask app, database, and Xtream response fixtures for testing.
"""
import os
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add parent directory to path so we can import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test database URI BEFORE importing app
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'

# Import app and models AFTER setting environment
import app as app_module
from models import db as _db


@pytest.fixture(scope='function')
def app():
    """
    Create Flask app configured for testing

    Uses in-memory SQLite database that's reset between tests.
    """
    flask_app = app_module.app
    flask_app.config['TESTING'] = True

    with flask_app.app_context():
        _db.create_all()
        yield flask_app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def db(app):
    """
    Database fixture with app context

    Provides access to db.session for direct database operations.
    """
    with app.app_context():
        yield _db


@pytest.fixture(scope='function')
def runner(app):
    """Flask CLI runner"""
    return app.test_cli_runner()


def make_response(status_code=200, payload=None):
    """Build a fake requests.Response"""
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.json.return_value = payload
    return response


@pytest.fixture
def xtream_response():
    """Factory for fake Xtream HTTP responses"""
    return make_response
