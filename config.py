"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _csv(value):
    return frozenset(v.strip().lower() for v in (value or '').split(',') if v.strip())


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Session Configuration (Production-safe defaults)
    # No PERMANENT_SESSION_LIFETIME: drafts must die with the browser session
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')

    # Preferred URL scheme (for url_for with _external=True)
    PREFERRED_URL_SCHEME = os.getenv('PREFERRED_URL_SCHEME', 'http')

    # Inventory API
    SHOP_API_BASE_URL = os.getenv('SHOP_API_BASE_URL', 'http://localhost:4000/api')
    SHOP_API_TOKEN = os.getenv('SHOP_API_TOKEN')
    SHOP_API_TIMEOUT = float(os.getenv('SHOP_API_TIMEOUT', '10'))

    # Draft persistence: 'session' (cookie) or 'redis'
    DRAFT_BACKEND = os.getenv('DRAFT_BACKEND', 'session')
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    DRAFT_TTL = int(os.getenv('DRAFT_TTL', '86400'))  # seconds
    DRAFT_KEY_PREFIX = os.getenv('DRAFT_KEY_PREFIX', 'backoffice')

    # Header the front-end fills from performance.getEntriesByType('navigation')
    NAVIGATION_TYPE_HEADER = os.getenv('NAVIGATION_TYPE_HEADER', 'X-Navigation-Type')

    # Catalog / pricing
    BULK_CATEGORIES = _csv(os.getenv('BULK_CATEGORIES', 'water'))
    DEFAULT_DISCOUNT_B2C = os.getenv('DEFAULT_DISCOUNT_B2C', '12')
    DEFAULT_DISCOUNT_B2B = os.getenv('DEFAULT_DISCOUNT_B2B', '18')

    # Customer lookup
    SEARCH_DEBOUNCE_MS = int(os.getenv('SEARCH_DEBOUNCE_MS', '300'))
    CUSTOMER_PAGE_SIZE = int(os.getenv('CUSTOMER_PAGE_SIZE', '500'))


class TestingConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    WTF_CSRF_ENABLED = False
    SECRET_KEY = 'test-secret-key'
    DRAFT_BACKEND = 'memory'
    SHOP_API_BASE_URL = 'http://inventory.test/api'
    BULK_CATEGORIES = frozenset({'water'})
    DEFAULT_DISCOUNT_B2C = '12'
    DEFAULT_DISCOUNT_B2B = '18'
