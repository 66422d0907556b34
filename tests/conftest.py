"""
Root pytest configuration and fixtures for unit and integration tests.
"""
import os
import sys
import uuid
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Test configuration
os.environ['FLASK_ENV'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['SESSION_SECRET'] = 'test-secret-key-for-testing-only'
os.environ.pop('REDIS_URL', None)

TEST_PASSWORD = 'testpassword123'


@pytest.fixture(scope='function')
def app():
    """Fresh application and in-memory database per test."""
    from app import create_app
    from config import TestingConfig
    from models import db

    test_app = create_app(TestingConfig)
    with test_app.app_context():
        yield test_app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    from models import db

    yield db.session
    db.session.rollback()


@pytest.fixture
def test_password():
    return TEST_PASSWORD


@pytest.fixture(scope='function')
def test_user(db_session):
    from models import User

    unique_id = uuid.uuid4().hex[:8]
    user = User(username=f'testuser_{unique_id}', email=f'test_{unique_id}@example.com')
    user.set_password(TEST_PASSWORD)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def authenticated_client(client, test_user):
    """Test client logged in as ``test_user`` through the login endpoint."""
    response = client.post('/auth/login', json={'email': test_user.email, 'password': TEST_PASSWORD})
    assert response.status_code == 200, response.get_json()
    return client


@pytest.fixture(scope='function')
def make_task(db_session, test_user):
    """Insert a task row for ``test_user`` and return it."""
    from models import Task

    def _make(**fields):
        fields.setdefault('title', 'Read chapter')
        fields.setdefault('estimated_hours', 2)
        task = Task(user_id=test_user.id, **fields)
        db_session.add(task)
        db_session.commit()
        return task

    return _make


@pytest.fixture(scope='function')
def store_plans(test_user):
    """Replace ``test_user``'s stored plans with the given domain plans."""
    from models import StudyPlanRepository

    def _store(plans):
        StudyPlanRepository(test_user.id).replace(plans)

    return _store
