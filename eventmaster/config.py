import os
from datetime import timedelta


def _env_flag(name, default='0'):
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SESSION_SECRET', 'dev-secret-key-change-me')

    # --- Storage ---
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'sql')  # sql, mongo, memory
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///eventmaster.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MONGODB_URL = (os.environ.get('MONGODB_URL') or 'mongodb://localhost:27017').strip('()"\' ')
    MONGODB_DB = os.environ.get('MONGODB_DB', 'eventmaster')

    # --- Session cookie ---
    SESSION_COOKIE_NAME = 'eventmaster.sid'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = _env_flag('SESSION_COOKIE_SECURE')
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)

    # --- Email ---
    EMAIL_ENABLED = _env_flag('EMAIL_ENABLED', '1')
    SMTP_HOST = os.environ.get('SMTP_HOST', 'smtp.gmail.com')
    SMTP_PORT = int(os.environ.get('SMTP_PORT', '587'))
    EMAIL_USER = os.environ.get('EMAIL_USER', '')
    EMAIL_PASSWORD = os.environ.get('EMAIL_PASSWORD') or os.environ.get('EMAIL_PASS', '')
    EMAIL_FROM_NAME = os.environ.get('EMAIL_FROM_NAME', 'EventMaster')

    # --- Default accounts ---
    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', 'admin@eventmaster.com')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', 'admin123')
    DEMO_USER_EMAIL = os.environ.get('DEMO_USER_EMAIL')
    DEMO_USER_PASSWORD = os.environ.get('DEMO_USER_PASSWORD')
    SEED_SAMPLE_EVENTS = _env_flag('SEED_SAMPLE_EVENTS', '1')

    # --- Auth0 ---
    AUTH0_DOMAIN = os.environ.get('AUTH0_DOMAIN')
    AUTH0_CLIENT_ID = os.environ.get('AUTH0_CLIENT_ID')
    AUTH0_CLIENT_SECRET = os.environ.get('AUTH0_CLIENT_SECRET')
    AUTH0_BASE_URL = os.environ.get('AUTH0_BASE_URL')

    # --- Stripe ---
    STRIPE_SECRET_KEY = os.environ.get('STRIPE_SECRET_KEY')
    STRIPE_WEBHOOK_SECRET = os.environ.get('STRIPE_WEBHOOK_SECRET')
    STRIPE_CURRENCY = os.environ.get('STRIPE_CURRENCY', 'usd')

    # --- Server ---
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
    PORT = int(os.environ.get('PORT', '5000'))


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing'
    STORAGE_BACKEND = 'sql'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    EMAIL_ENABLED = False
    SEED_SAMPLE_EVENTS = False
    ADMIN_EMAIL = 'admin@example.com'
    ADMIN_PASSWORD = 'password'
    DEMO_USER_EMAIL = None
    DEMO_USER_PASSWORD = None
    AUTH0_DOMAIN = None
    AUTH0_CLIENT_ID = None
    AUTH0_CLIENT_SECRET = None
    AUTH0_BASE_URL = None
    STRIPE_SECRET_KEY = None
    STRIPE_WEBHOOK_SECRET = None
