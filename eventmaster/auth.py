"""Session authentication: local email/password logins plus optional Auth0."""
import logging
from functools import wraps
from urllib.parse import urlencode

from authlib.integrations.base_client import OAuthError
from authlib.integrations.flask_client import OAuth
from flask import Blueprint, current_app, jsonify, redirect, request, session
from flask_login import LoginManager, UserMixin, current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from eventmaster.errors import ApiError
from eventmaster.schemas import LoginRequest, ProfileUpdate, RegisterRequest
from eventmaster.storage import get_storage

logger = logging.getLogger(__name__)

login_manager = LoginManager()
oauth = OAuth()

bp = Blueprint('auth', __name__)


class SessionUser(UserMixin):
    """Flask-Login wrapper around a storage user record."""

    def __init__(self, record):
        self.record = record
        self.id = record['id']
        self.email = record['email']

    @property
    def is_admin(self):
        return bool(self.record.get('is_admin'))

    @property
    def display_name(self):
        name = ' '.join(p for p in (self.record.get('first_name'), self.record.get('last_name')) if p)
        return name or self.email


@login_manager.user_loader
def load_user(user_id):
    record = get_storage().get_user(user_id)
    return SessionUser(record) if record else None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'message': 'Unauthorized'}), 401


def admin_required(fn):
    @wraps(fn)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            return unauthorized()
        if not current_user.is_admin:
            return jsonify({'message': 'Admin access required'}), 403
        return fn(*args, **kwargs)
    return wrapped


def public_user(record):
    if record is None:
        return None
    return {k: v for k, v in record.items() if k != 'password_hash'}


def start_session(record):
    session.permanent = True
    login_user(SessionUser(record))


def ensure_default_users(storage, config):
    """Create the configured admin and demo accounts when missing."""
    accounts = [
        (config.get('ADMIN_EMAIL'), config.get('ADMIN_PASSWORD'), 'Admin', True),
        (config.get('DEMO_USER_EMAIL'), config.get('DEMO_USER_PASSWORD'), 'Demo', False),
    ]
    for email, password, first_name, is_admin in accounts:
        if not email or not password:
            continue
        if storage.get_user_by_email(email.lower()) is not None:
            continue
        storage.create_user({
            'email': email.lower(),
            'password_hash': generate_password_hash(password),
            'first_name': first_name,
            'last_name': 'User',
            'is_admin': is_admin,
            'auth_provider': 'local',
        })
        logger.info('Created default %s user %s', 'admin' if is_admin else 'demo', email)


# --- Local accounts ---

@bp.post('/api/register')
def register():
    payload = RegisterRequest.model_validate(request.get_json(silent=True) or {})
    storage = get_storage()
    email = payload.email.lower()
    if storage.get_user_by_email(email) is not None:
        raise ApiError('User already exists', 400)

    user = storage.create_user({
        'email': email,
        'password_hash': generate_password_hash(payload.password),
        'username': payload.username,
        'first_name': payload.first_name or payload.username or email.split('@')[0],
        'last_name': payload.last_name or '',
        'is_admin': False,
        'auth_provider': 'local',
    })
    start_session(user)
    logger.info('Registered user %s', user['id'])
    return jsonify(public_user(user)), 201


@bp.post('/api/login')
def login():
    payload = LoginRequest.model_validate(request.get_json(silent=True) or {})

    user = get_storage().get_user_by_email(payload.email.strip().lower())
    if (user is None or not user.get('password_hash')
            or not check_password_hash(user['password_hash'], payload.password)):
        raise ApiError('Invalid email or password', 401)

    start_session(user)
    return jsonify(public_user(user))


@bp.post('/api/logout')
def logout():
    logout_user()
    session.clear()
    return jsonify({'message': 'Logged out successfully'})


@bp.get('/api/user')
@login_required
def get_current_user():
    return jsonify(public_user(current_user.record))


@bp.patch('/api/user')
@login_required
def update_profile():
    payload = ProfileUpdate.model_validate(request.get_json(silent=True) or {})
    updates = payload.model_dump(exclude_unset=True)
    user = get_storage().upsert_user({'id': current_user.id, **updates})
    return jsonify(public_user(user))


# --- Auth0 ---

def auth0_configured(config):
    return all(config.get(k) for k in
               ('AUTH0_DOMAIN', 'AUTH0_CLIENT_ID', 'AUTH0_CLIENT_SECRET', 'AUTH0_BASE_URL'))


def init_auth0(app):
    oauth.init_app(app)
    if not auth0_configured(app.config):
        logger.info('Auth0 not configured, using local authentication only')
        return
    domain = app.config['AUTH0_DOMAIN'].strip()
    oauth.register(
        'auth0',
        client_id=app.config['AUTH0_CLIENT_ID'].strip(),
        client_secret=app.config['AUTH0_CLIENT_SECRET'].strip(),
        server_metadata_url=f'https://{domain}/.well-known/openid-configuration',
        client_kwargs={'scope': 'openid email profile'},
    )
    logger.info('Auth0 authentication enabled for %s', domain)


def find_or_create_auth0_user(storage, userinfo):
    """Map an Auth0 profile onto a local user, creating it on first login."""
    email = (userinfo.get('email') or '').lower()
    if not email:
        raise ApiError('No email found in Auth0 profile', 400)

    user = storage.get_user_by_email(email)
    if user is None:
        name_parts = (userinfo.get('name') or '').split(' ')
        user = storage.create_user({
            'email': email,
            'first_name': userinfo.get('given_name') or name_parts[0],
            'last_name': userinfo.get('family_name') or ' '.join(name_parts[1:]),
            'profile_image_url': userinfo.get('picture'),
            'is_admin': False,
            'auth_provider': 'auth0',
            'auth_provider_id': userinfo.get('sub'),
        })
        logger.info('Created user %s from Auth0 profile', user['id'])
    elif not user.get('auth_provider_id') and userinfo.get('sub'):
        user = storage.upsert_user({'id': user['id'], 'auth_provider_id': userinfo['sub']})
    return user


@bp.get('/auth/login')
def auth_login_redirect():
    if auth0_configured(current_app.config):
        return redirect('/api/auth/login')
    return redirect('/login')


@bp.get('/auth/logout')
def auth_logout_redirect():
    if not auth0_configured(current_app.config):
        return redirect('/logout')
    logout_user()
    session.clear()
    cfg = current_app.config
    query = urlencode({'returnTo': cfg['AUTH0_BASE_URL'], 'client_id': cfg['AUTH0_CLIENT_ID']})
    return redirect(f"https://{cfg['AUTH0_DOMAIN']}/v2/logout?{query}")


@bp.get('/api/auth/login')
def auth0_login():
    if not auth0_configured(current_app.config):
        return redirect('/login')
    callback = current_app.config['AUTH0_BASE_URL'].rstrip('/') + '/api/auth/callback'
    return oauth.auth0.authorize_redirect(redirect_uri=callback)


@bp.get('/api/auth/callback')
def auth0_callback():
    if not auth0_configured(current_app.config):
        return redirect('/login')
    try:
        token = oauth.auth0.authorize_access_token()
    except OAuthError as e:
        logger.warning('Auth0 callback failed: %s', e)
        return redirect('/auth?error=auth_failed')
    userinfo = token.get('userinfo') or oauth.auth0.userinfo()
    try:
        user = find_or_create_auth0_user(get_storage(), userinfo)
    except ApiError as e:
        logger.warning('Auth0 login rejected: %s', e.message)
        return redirect('/auth?error=auth_failed')
    start_session(user)
    return redirect('/events')


@bp.get('/api/auth/status')
def auth_status():
    return jsonify({
        'is_authenticated': current_user.is_authenticated,
        'user': public_user(current_user.record) if current_user.is_authenticated else None,
    })
