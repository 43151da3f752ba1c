import os
from pathlib import Path

from dotenv import load_dotenv

from .logging_config import build_logging_config, configure_structlog

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / '.env')


def _env(key: str, default: str = '') -> str:
    value = os.environ.get(key)
    return value if value else default


APP_ENV = _env('APP_ENV', 'dev')

SECRET_KEY = _env('SECRET_KEY', 'dev-only-secret-key')

DEBUG = APP_ENV == 'dev'

ALLOWED_HOSTS = [host.strip() for host in _env('ALLOWED_HOSTS', '*').split(',') if host.strip()]

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'rest_framework',
    'assignment',
]

MIDDLEWARE = [
    'assignment.middleware.RequestContextMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'ReviewAssigner.urls'

WSGI_APPLICATION = 'ReviewAssigner.wsgi.application'

# Дедлайн запроса; для PostgreSQL применяется как statement_timeout
REQUEST_TIMEOUT_MS = int(_env('REQUEST_TIMEOUT_MS', '500'))

DB_ENGINE = _env('DB_ENGINE', 'sqlite')

if DB_ENGINE == 'postgres':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'HOST': _env('DB_HOST', 'localhost'),
            'PORT': _env('DB_PORT', '5432'),
            'NAME': _env('DB_NAME', 'postgres'),
            'USER': _env('DB_USER', 'postgres'),
            'PASSWORD': _env('DB_PASSWORD', 'postgres'),
            'OPTIONS': {
                'options': f'-c statement_timeout={REQUEST_TIMEOUT_MS}',
            },
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': _env('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
            # Транзакция берет блокировку записи сразу на BEGIN,
            # параллельные изменения одного PR выполняются по очереди
            'OPTIONS': {
                'transaction_mode': 'IMMEDIATE',
                'timeout': 20,
            },
            # Файловая тестовая БД, чтобы потоки в тестах видели одни данные
            'TEST': {
                'NAME': str(BASE_DIR / 'test_db.sqlite3'),
            },
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

USE_TZ = True
TIME_ZONE = 'UTC'

APPEND_SLASH = False

REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': ['rest_framework.renderers.JSONRenderer'],
    'DEFAULT_PARSER_CLASSES': ['rest_framework.parsers.JSONParser'],
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': ['rest_framework.permissions.AllowAny'],
    'UNAUTHENTICATED_USER': None,
    'TEST_REQUEST_DEFAULT_FORMAT': 'json',
}

LOG_LEVEL = _env('LOG_LEVEL', 'DEBUG' if DEBUG else 'INFO')

LOGGING = build_logging_config(LOG_LEVEL, json_format=APP_ENV == 'prod')

configure_structlog()
