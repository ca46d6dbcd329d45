import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URI') or 'sqlite:///spp_manager.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max upload size
    ALLOWED_EXTENSIONS = {'xlsx', 'xls'}

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_DIR = os.environ.get('LOG_DIR') or 'logs'

    # Admin gate
    LOGIN_REQUIRED = _env_flag('LOGIN_REQUIRED', True)
    DEFAULT_ADMIN_USERNAME = os.environ.get('DEFAULT_ADMIN_USERNAME') or 'admin'
    DEFAULT_ADMIN_PASSWORD = os.environ.get('DEFAULT_ADMIN_PASSWORD') or 'gorengan123'
    DEFAULT_APP_NAME = os.environ.get('DEFAULT_APP_NAME') or 'SPP Manager'

    # Pagination
    DEFAULT_PAGE_SIZE = 100
    DEFAULT_PAYMENT_PAGE_SIZE = 50
    MAX_PAGE_SIZE = 1000
    MAX_PAYMENT_PAGE_SIZE = 100

    # Receipt header used until the school identity is saved
    SCHOOL_NAME = os.environ.get('SCHOOL_NAME') or 'SMP Negeri 1'
    SCHOOL_ADDRESS = os.environ.get('SCHOOL_ADDRESS') or 'Jl. Pendidikan No. 1'
    SCHOOL_PHONE = os.environ.get('SCHOOL_PHONE') or '021-12345678'
    SCHOOL_EMAIL = os.environ.get('SCHOOL_EMAIL') or 'info@smpn1.sch.id'
    SCHOOL_PRINCIPAL = os.environ.get('SCHOOL_PRINCIPAL') or 'Drs. Ahmad Sudirman, M.Pd'
    SCHOOL_NPSN = os.environ.get('SCHOOL_NPSN') or '12345678'
