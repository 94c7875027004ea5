import os

from dotenv import load_dotenv

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(BASE_DIR, '.env'))


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-me')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///lekka.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # 'session' or 'cached' (session first, then the lekka_user cookie)
    IDENTITY_PROVIDER = os.environ.get('IDENTITY_PROVIDER', 'session')

    # Write the transaction and its stock movement in one database transaction
    STOCK_ADJUSTMENT_ATOMIC = _env_flag('STOCK_ADJUSTMENT_ATOMIC')
    # Reverse the old stock effect and apply the new one when a transaction is edited
    STOCK_ADJUST_ON_EDIT = _env_flag('STOCK_ADJUST_ON_EDIT')

    GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY', '')
    GEMINI_MODEL = os.environ.get('GEMINI_MODEL', 'gemini-1.5-flash')
    GEMINI_TIMEOUT = int(os.environ.get('GEMINI_TIMEOUT', 30))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SECRET_KEY = 'test-secret'
    IDENTITY_PROVIDER = 'session'
    STOCK_ADJUSTMENT_ATOMIC = False
    STOCK_ADJUST_ON_EDIT = False
    GEMINI_API_KEY = 'test-key'
