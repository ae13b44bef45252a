import os
from dotenv import load_dotenv

load_dotenv(os.path.join(os.path.dirname(__file__), '.env'))

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-prod'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///occupancy.db'
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    TIMEZONE = os.environ.get('TIMEZONE', 'Africa/Porto-Novo')

    # External collaborators
    BOOKING_API_URL = os.environ.get('BOOKING_API_URL') or 'http://localhost:8000/api'
    BOOKING_API_TOKEN = os.environ.get('BOOKING_API_TOKEN')
    SPACE_API_URL = os.environ.get('SPACE_API_URL') or BOOKING_API_URL
    UPSTREAM_TIMEOUT_SECONDS = float(os.environ.get('UPSTREAM_TIMEOUT_SECONDS', 5))

    # Business Rules Defaults
    WORKING_HOURS_START = int(os.environ.get('WORKING_HOURS_START', 8))   # 8 AM
    WORKING_HOURS_END = int(os.environ.get('WORKING_HOURS_END', 20))      # 8 PM
    EXTENSION_MAX_LOOKAHEAD_HOURS = None  # None = until closing time
    HALF_DAY_HOURS = float(os.environ.get('HALF_DAY_HOURS', 4))
    FULL_DAY_HOURS = float(os.environ.get('FULL_DAY_HOURS', 8))
    CHECK_IN_GRACE_DAYS = int(os.environ.get('CHECK_IN_GRACE_DAYS', 0))

class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = 'DEBUG'

class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    BOOKING_API_URL = 'http://booking.test/api'
    SPACE_API_URL = 'http://booking.test/api'

class ProductionConfig(Config):
    DEBUG = False
    # In prod, rely on env vars strictly
