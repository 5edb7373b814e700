"""
Django settings for railway_backend project.
"""

import os
from pathlib import Path
from datetime import timedelta
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-change-this-in-production')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')

APP_NAME = os.getenv('APP_NAME', 'Railway Management System')


# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    # Third party apps
    'rest_framework',
    'rest_framework_simplejwt',
    'drf_spectacular',
    # Local apps
    'core',
    'trains',
    'bookings',
    'analytics',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    # Custom middleware for API logging
    'utils.middleware.APILoggingMiddleware',
]

ROOT_URLCONF = 'railway_backend.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'railway_backend.wsgi.application'


# Database Configuration
# Row locks and a busy database never block a transaction for longer than this.
DB_LOCK_TIMEOUT_SECONDS = int(os.getenv('DB_LOCK_TIMEOUT_SECONDS', 5))

# For development, using SQLite. For production, use MySQL.
USE_MYSQL = os.getenv('USE_MYSQL', 'False').lower() == 'true'

if USE_MYSQL:
    # MySQL configuration - requires mysqlclient package
    # pip install mysqlclient (requires MySQL dev libraries)
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.mysql',
            'NAME': os.getenv('MYSQL_DATABASE', 'train_management'),
            'USER': os.getenv('MYSQL_USER', 'root'),
            'PASSWORD': os.getenv('MYSQL_PASSWORD', ''),
            'HOST': os.getenv('MYSQL_HOST', 'localhost'),
            'PORT': os.getenv('MYSQL_PORT', '3306'),
            'OPTIONS': {
                'charset': 'utf8mb4',
                'isolation_level': 'read committed',
                'init_command': f'SET SESSION innodb_lock_wait_timeout = {DB_LOCK_TIMEOUT_SECONDS}',
            }
        }
    }
else:
    # SQLite for development/testing
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
            'OPTIONS': {
                'timeout': DB_LOCK_TIMEOUT_SECONDS,
                # SQLite ignores SELECT ... FOR UPDATE; take the write lock at BEGIN
                # so concurrent bookings queue instead of deadlocking on upgrade.
                'transaction_mode': 'IMMEDIATE',
            },
            # File-backed so test threads share the database and wait on the lock
            'TEST': {
                'NAME': BASE_DIR / 'test_db.sqlite3',
            },
        }
    }

# MongoDB Configuration (activity log and optional user backups)
MONGODB_ENABLED = os.getenv('MONGODB_ENABLED', 'False').lower() == 'true'
MONGODB_URI = os.getenv('MONGODB_URI', 'mongodb://localhost:27017/')
MONGODB_NAME = os.getenv('MONGODB_NAME', 'railway_logs')


# Authentication gate
LOGIN_MAX_ATTEMPTS = int(os.getenv('LOGIN_MAX_ATTEMPTS', 3))

# Where each newly registered user is copied to: 'csv', 'mongo' or 'none'
USER_BACKUP_BACKEND = os.getenv('USER_BACKUP_BACKEND', 'csv').lower()
USER_BACKUP_CSV_PATH = os.getenv('USER_BACKUP_CSV_PATH', str(BASE_DIR / 'users_backup.csv'))


# Password hashing (bcrypt first, PBKDF2 kept so older hashes still verify)
PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.BCryptSHA256PasswordHasher',
    'django.contrib.auth.hashers.PBKDF2PasswordHasher',
]

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
        'OPTIONS': {'min_length': 8},
    },
]


# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'django': {'handlers': ['console'], 'level': 'WARNING', 'propagate': False},
        'core': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'trains': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'bookings': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'analytics': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'utils': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
    },
}


# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'Asia/Kolkata'
USE_I18N = True
USE_TZ = True


# Static files (CSS, JavaScript, Images)
STATIC_URL = 'static/'

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Custom User Model
AUTH_USER_MODEL = 'core.User'

# REST Framework Configuration
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
}

SPECTACULAR_SETTINGS = {
    'TITLE': 'Railway Reservation API',
    'DESCRIPTION': 'Train inventory and passenger reservations',
    'VERSION': '1.0.0',
}

# JWT Configuration
SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=int(os.getenv('JWT_ACCESS_TOKEN_LIFETIME_MINUTES', 60))),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=int(os.getenv('JWT_REFRESH_TOKEN_LIFETIME_DAYS', 7))),
    'ROTATE_REFRESH_TOKENS': True,
    'UPDATE_LAST_LOGIN': True,
    'ALGORITHM': 'HS256',
    'AUTH_HEADER_TYPES': ('Bearer',),
    'AUTH_TOKEN_CLASSES': ('rest_framework_simplejwt.tokens.AccessToken',),
}
