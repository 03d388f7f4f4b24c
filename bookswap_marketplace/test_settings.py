"""
Settings used by the test suite.

Runs against a file-backed SQLite database so that threaded tests get
separate connections with a busy timeout instead of a shared in-memory cache.
"""

from .settings import *  # noqa: F401,F403
from .settings import BASE_DIR, REST_FRAMEWORK

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': str(BASE_DIR / 'test_bookswap.sqlite3'),
        'OPTIONS': {
            'timeout': 30,
        },
        'TEST': {
            'NAME': str(BASE_DIR / 'test_bookswap.sqlite3'),
        },
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

REST_FRAMEWORK = {
    **REST_FRAMEWORK,
    'DEFAULT_THROTTLE_RATES': {
        'offers': '10000/minute',
        'messages': '10000/minute',
    },
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'root': {
        'handlers': ['null'],
    },
}
