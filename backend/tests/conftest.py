"""
Pytest fixtures for Teranga backend tests.

Provides test database setup, role users, callers and test client.
"""

import pytest
from teranga import create_app
from teranga.extensions import db
from teranga.models import User, Product
from teranga.services.auth_service import hash_password
from teranga.services.access_service import Caller
from teranga.services import session_service


PASSWORD = "Password123"


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash once per run."""
    return hash_password(PASSWORD)


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp("evidences")),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


def _make_user(db_session, password_hash, email, role):
    user = User(
        email=email,
        first_name=role.capitalize(),
        last_name="Test",
        password_hash=password_hash,
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "admin@teranga.test", "admin")


@pytest.fixture(scope='function')
def agent_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "agent@teranga.test", "agent")


@pytest.fixture(scope='function')
def client_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "client@teranga.test", "client")


@pytest.fixture(scope='function')
def other_client_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "other@teranga.test", "client")


@pytest.fixture(scope='function')
def admin(admin_user):
    return Caller.from_user(admin_user)


@pytest.fixture(scope='function')
def agent(agent_user):
    return Caller.from_user(agent_user)


@pytest.fixture(scope='function')
def customer(client_user):
    return Caller.from_user(client_user)


@pytest.fixture(scope='function')
def other_customer(other_client_user):
    return Caller.from_user(other_client_user)


@pytest.fixture(scope='function')
def product(db_session):
    """Catalog product priced 2000."""
    product = Product(name="Sac de ciment", sku="CIM-50", price=2000, is_active=True)
    db_session.add(product)
    db_session.commit()
    return product


def _headers(user) -> dict:
    """Authorization header carrying a fresh session token for user."""
    _, token = session_service.create_session(user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture(scope='function')
def agent_headers(agent_user):
    return _headers(agent_user)


@pytest.fixture(scope='function')
def client_headers(client_user):
    return _headers(client_user)


@pytest.fixture(scope='function')
def other_client_headers(other_client_user):
    return _headers(other_client_user)
