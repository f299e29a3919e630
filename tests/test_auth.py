from types import SimpleNamespace

import pytest

from eventmaster import auth, create_app
from eventmaster.auth import auth0_configured, find_or_create_auth0_user
from eventmaster.config import TestingConfig
from eventmaster.errors import ApiError
from eventmaster.storage import MemoryStorage


def test_register_logs_in(client):
    resp = client.post('/api/register', json={'email': 'New@Example.com', 'password': 'secret123'})
    assert resp.status_code == 201
    user = resp.get_json()
    assert user['email'] == 'new@example.com'
    assert user['first_name'] == 'new'
    assert 'password_hash' not in user

    me = client.get('/api/user')
    assert me.status_code == 200
    assert me.get_json()['id'] == user['id']


def test_register_rejects_duplicate(client, user_client):
    resp = client.post('/api/register', json={'email': 'alice@example.com', 'password': 'another1'})
    assert resp.status_code == 400
    assert resp.get_json() == {'message': 'User already exists'}


@pytest.mark.parametrize('payload', [
    {},
    {'email': 'x@example.com'},
    {'email': 'not-an-email', 'password': 'secret123'},
    {'email': 'x@example.com', 'password': '123'},
])
def test_register_validates_payload(client, payload):
    assert client.post('/api/register', json=payload).status_code == 400


def test_login_and_logout(client, user_client):
    resp = client.post('/api/login', json={'email': 'ALICE@example.com', 'password': 'secret123'})
    assert resp.status_code == 200
    assert resp.get_json()['first_name'] == 'Alice'

    assert client.post('/api/logout').status_code == 200
    assert client.get('/api/user').status_code == 401


def test_login_rejects_bad_credentials(client, user_client):
    resp = client.post('/api/login', json={'email': 'alice@example.com', 'password': 'wrong'})
    assert resp.status_code == 401
    assert resp.get_json() == {'message': 'Invalid email or password'}
    assert client.post('/api/login', json={'email': 'alice@example.com'}).status_code == 400


def test_anonymous_user_is_unauthorized(client):
    resp = client.get('/api/user')
    assert resp.status_code == 401
    assert resp.get_json() == {'message': 'Unauthorized'}


def test_update_profile(user_client):
    resp = user_client.patch('/api/user', json={'last_name': 'Jones', 'username': 'aj'})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['last_name'] == 'Jones'
    assert body['first_name'] == 'Alice'


def test_default_admin_created(admin_client):
    me = admin_client.get('/api/user').get_json()
    assert me['is_admin'] is True
    assert me['email'] == 'admin@example.com'


def test_auth_status(client, user_client):
    assert client.get('/api/auth/status').get_json() == {'is_authenticated': False, 'user': None}
    status = user_client.get('/api/auth/status').get_json()
    assert status['is_authenticated'] is True
    assert status['user']['email'] == 'alice@example.com'


def test_auth_redirects_without_auth0(client):
    assert client.get('/auth/login').headers['Location'].endswith('/login')
    assert client.get('/auth/logout').headers['Location'].endswith('/logout')
    assert client.get('/api/auth/login').status_code == 302


def test_auth0_configured_requires_every_setting():
    config = {'AUTH0_DOMAIN': 'tenant.auth0.com', 'AUTH0_CLIENT_ID': 'id',
              'AUTH0_CLIENT_SECRET': 'secret', 'AUTH0_BASE_URL': 'http://localhost:5000'}
    assert auth0_configured(config)
    assert not auth0_configured({**config, 'AUTH0_CLIENT_SECRET': None})


# --- Auth0 profile mapping ---

def test_auth0_user_created_on_first_login():
    storage = MemoryStorage()
    user = find_or_create_auth0_user(storage, {
        'email': 'Zoe@Example.com', 'name': 'Zoe Quinn', 'sub': 'auth0|123', 'picture': 'http://img',
    })
    assert user['email'] == 'zoe@example.com'
    assert user['first_name'] == 'Zoe'
    assert user['last_name'] == 'Quinn'
    assert user['auth_provider'] == 'auth0'
    assert find_or_create_auth0_user(storage, {'email': 'zoe@example.com'})['id'] == user['id']


def test_auth0_links_existing_local_user():
    storage = MemoryStorage()
    local = storage.create_user({'email': 'yan@example.com', 'auth_provider': 'local'})
    user = find_or_create_auth0_user(storage, {'email': 'yan@example.com', 'sub': 'auth0|999'})
    assert user['id'] == local['id']
    assert user['auth_provider_id'] == 'auth0|999'


def test_auth0_profile_without_email_rejected():
    with pytest.raises(ApiError) as excinfo:
        find_or_create_auth0_user(MemoryStorage(), {'sub': 'auth0|1'})
    assert excinfo.value.status == 400


# --- Auth0 callback ---

class Auth0Config(TestingConfig):
    AUTH0_DOMAIN = 'tenant.auth0.com'
    AUTH0_CLIENT_ID = 'client-id'
    AUTH0_CLIENT_SECRET = 'client-secret'
    AUTH0_BASE_URL = 'http://localhost:5000'


@pytest.fixture
def auth0_client(monkeypatch):
    """Test client whose Auth0 token exchange returns ``profile``."""
    def _make(profile):
        app = create_app(Auth0Config)
        provider = SimpleNamespace(authorize_access_token=lambda: {'userinfo': profile})
        monkeypatch.setattr(auth, 'oauth', SimpleNamespace(auth0=provider))
        return app.test_client()
    return _make


def test_auth0_callback_logs_in(auth0_client):
    client = auth0_client({'email': 'quinn@example.com', 'name': 'Quinn Lee', 'sub': 'auth0|42'})
    resp = client.get('/api/auth/callback')
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/events')
    assert client.get('/api/user').get_json()['email'] == 'quinn@example.com'


def test_auth0_callback_without_email_redirects(auth0_client):
    client = auth0_client({'sub': 'auth0|1'})
    resp = client.get('/api/auth/callback')
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/auth?error=auth_failed')
    assert client.get('/api/user').status_code == 401
