"""
Authentication endpoints and session tokens.
"""

from datetime import timedelta

from teranga.extensions import db
from teranga.services import session_service
from teranga.time_utils import utcnow


class TestRegister:

    def test_register_creates_client(self, client, db_session):
        response = client.post('/api/auth/register', json={
            "email": "  Awa@Example.SN ",
            "password": "Teranga2025",
            "firstName": "Awa",
        })
        assert response.status_code == 201
        user = response.get_json()["user"]
        assert user["email"] == "awa@example.sn"
        assert user["role"] == "client"
        assert "password_hash" not in user

    def test_role_cannot_be_chosen(self, client, db_session):
        response = client.post('/api/auth/register', json={
            "email": "boss@example.sn", "password": "Teranga2025", "role": "admin",
        })
        assert response.get_json()["user"]["role"] == "client"

    def test_weak_password(self, client, db_session):
        response = client.post('/api/auth/register', json={"email": "a@b.sn", "password": "short"})
        assert response.status_code == 400

    def test_duplicate_email(self, client, client_user):
        response = client.post('/api/auth/register', json={
            "email": "client@teranga.test", "password": "Teranga2025",
        })
        assert response.status_code == 409

    def test_missing_fields(self, client, db_session):
        assert client.post('/api/auth/register', json={"email": "x@y.sn"}).status_code == 400


class TestLoginLogout:

    def test_login_me_logout(self, client, client_user):
        response = client.post('/api/auth/login', json={"email": "client@teranga.test", "password": "Password123"})
        assert response.status_code == 200
        token = response.get_json()["token"]
        headers = {'Authorization': f'Bearer {token}'}

        response = client.get('/api/auth/me', headers=headers)
        assert response.status_code == 200
        assert response.get_json()["user"]["id"] == client_user.id

        assert client.post('/api/auth/logout', headers=headers).status_code == 200
        assert client.get('/api/auth/me', headers=headers).status_code == 401

    def test_bad_credentials(self, client, client_user):
        response = client.post('/api/auth/login', json={"email": "client@teranga.test", "password": "Wrong1234"})
        assert response.status_code == 401
        assert response.get_json()["error"] == "Invalid credentials"

    def test_inactive_user_cannot_login(self, client, client_user):
        client_user.is_active = False
        db.session.commit()
        response = client.post('/api/auth/login', json={"email": "client@teranga.test", "password": "Password123"})
        assert response.status_code == 401

    def test_logout_requires_header(self, client, db_session):
        assert client.post('/api/auth/logout').status_code == 401


class TestSessions:

    def test_deactivated_user_session_is_revoked(self, client_user):
        session, token = session_service.create_session(client_user.id)
        client_user.is_active = False
        db.session.commit()

        assert session_service.validate_session(token) is None
        db.session.refresh(session)
        assert session.revoked_at is not None

    def test_idle_session_expires(self, client_user):
        session, token = session_service.create_session(client_user.id)
        session.last_used_at = utcnow() - session_service.SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
        db.session.commit()

        assert session_service.validate_session(token) is None

    def test_absolute_expiry(self, client_user):
        session, token = session_service.create_session(client_user.id)
        session.expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()

        assert session_service.validate_session(token) is None

    def test_valid_session_context(self, client_user):
        _, token = session_service.create_session(client_user.id)
        context = session_service.validate_session(token)
        assert context.user.id == client_user.id
        assert session_service.validate_session("not-a-token") is None


class TestSystem:

    def test_health(self, client, db_session):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_version(self, client):
        assert client.get('/version').get_json()["api_version"] == "1.0.0"
