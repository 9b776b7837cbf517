"""
settings.py — Django project configuration for Roster Backend

What this file configures
===============================================================================
- Core Django wiring (INSTALLED_APPS, MIDDLEWARE, TEMPLATES, DB)
- REST Framework defaults (public API, filtering, pagination, throttling,
  domain exception handler)
- CORS for FE ↔ BE requests
- Photo storage: local filesystem (default) or S3 via django-storages
- Production serving of static via WhiteNoise
- Swagger (drf-yasg) docs
- Renumbering knobs (batch size, lock timeout)

How environment variables drive behavior (deployment-safe)
===============================================================================
DJANGO_DEBUG            -> Enables dev mode when true. Defaults to True locally.
DJANGO_SECRET_KEY       -> Required when DJANGO_DEBUG=False (production).
DJANGO_ALLOWED_HOSTS    -> Comma-separated list of allowed hostnames in prod.
CORS_ALLOW_ALL_ORIGINS  -> Dev toggle to allow any origin (default True in dev).
CORS_ALLOWED_ORIGINS    -> Comma-separated list of exact origins (prod).
DATABASE_URL            -> Postgres/SQLite URL (dj-database-url). SQLite file otherwise.
PHOTO_STORAGE_MODE      -> "local" (MEDIA_ROOT/uploads) or "s3" (django-storages).
PHOTO_MAX_UPLOAD_SIZE   -> Max photo size in bytes (default 5 MB).
AWS_STORAGE_BUCKET_NAME -> S3 bucket for photos.
AWS_S3_REGION_NAME      -> AWS region (e.g., ap-southeast-1).
AWS_ACCESS_KEY_ID       -> AWS key (omit if using instance role).
AWS_SECRET_ACCESS_KEY   -> AWS secret (omit if using instance role).
AWS_S3_CUSTOM_DOMAIN    -> Optional CDN/CloudFront domain for photo URLs.
AWS_QUERYSTRING_AUTH    -> True to sign URLs; False for public-read objects.
RENUMBER_BATCH_SIZE     -> Rows per INSERT while rewriting ids (default 500).
RENUMBER_LOCK_TIMEOUT_MS-> Max wait for the table lock on Postgres (default 5000).
LOG_LEVEL               -> Level for the "users" logger (default INFO).
ANON_THROTTLE_RATE      -> DRF anon throttle (default 100/min).
UPLOAD_THROTTLE_RATE    -> DRF scoped throttle for photo uploads (default 10/hour).

Why some ordering matters
===============================================================================
- We compute DEBUG first so SECRET_KEY can enforce “prod requires a key.”
- SECRET_KEY only falls back to a dev key when DEBUG=True.
- The database block runs before the storage block because SQLite needs
  IMMEDIATE transactions for renumbering to hold the write lock up front.

Deployment notes
===============================================================================
- Build command example:
    pip install . && python manage.py collectstatic --noinput && python manage.py migrate --noinput
- Start command example:
    gunicorn roster_backend.wsgi:application --log-file -
"""

from pathlib import Path
import os
import sys


# ---------------------------
# Helpers for env parsing
# ---------------------------
def _get_bool(env_key: str, default: bool = False) -> bool:
    """Parse booleans from env like '1', 'true', 'yes'."""
    raw = os.environ.get(env_key, str(default))
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}

def _get_list(env_key: str, default=None):
    """Parse comma-separated lists from env (e.g., 'a.com,b.com')."""
    if default is None:
        default = []
    raw = os.environ.get(env_key)
    if not raw:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]

def _get_int(env_key: str, default: int) -> int:
    raw = os.environ.get(env_key)
    if raw is None or not raw.strip():
        return default
    return int(raw)


BASE_DIR = Path(__file__).resolve().parent.parent

# Reads DJANGO_DEBUG from env. Defaults to True for dev.
DEBUG = _get_bool("DJANGO_DEBUG", True)

# pytest-django imports settings after pytest is loaded; manage.py test passes "test".
TESTING = "test" in sys.argv or "pytest" in sys.modules


# --- CORS ---
CORS_ALLOW_ALL_ORIGINS = _get_bool("CORS_ALLOW_ALL_ORIGINS", DEBUG)
CORS_ALLOWED_ORIGINS = _get_list("CORS_ALLOWED_ORIGINS", [])
CSRF_TRUSTED_ORIGINS = _get_list("CSRF_TRUSTED_ORIGINS", [])


# SECRET_KEY with safe production enforcement
#    - In dev (DEBUG=True): fallback to a dev key if none provided
#    - In prod (DEBUG=False): require DJANGO_SECRET_KEY
SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY") or (
    "django-insecure-8w$0r^ster-dev-only-key-k2m!x7q%z4p@v1n6c3b9" if DEBUG else None
)
if not SECRET_KEY:
    raise RuntimeError("DJANGO_SECRET_KEY must be set when DJANGO_DEBUG=False")


ALLOWED_HOSTS = _get_list("DJANGO_ALLOWED_HOSTS", [] if DEBUG else ["127.0.0.1"])


INSTALLED_APPS = [
    # Django core
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third-party
    'rest_framework',
    'corsheaders',
    'django_filters',                             # filtering backend for DRF
    'drf_yasg',                                   # Swagger/OpenAPI docs

    # Local apps
    'users',
]

SWAGGER_SETTINGS = {
    "USE_SESSION_AUTH": False,  # the API is public; hide the session login button
    "SECURITY_DEFINITIONS": {},
}

MIDDLEWARE = [
    # CORS should be as high as possible
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',

    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',  # Serves static in prod
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

REST_FRAMEWORK = {
    # Public API (no accounts in this service); Admin keeps its own session auth.
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.AllowAny",
    ),
    "DEFAULT_FILTER_BACKENDS": (
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.SearchFilter",
        "rest_framework.filters.OrderingFilter",
    ),
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 50,
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
        "rest_framework.parsers.FormParser",
        "rest_framework.parsers.MultiPartParser",
    ],
    "DEFAULT_THROTTLE_CLASSES": [ "rest_framework.throttling.AnonRateThrottle" ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": os.environ.get("ANON_THROTTLE_RATE", "100/min"),
        "uploads": os.environ.get("UPLOAD_THROTTLE_RATE", "10/hour"),
    },
    "EXCEPTION_HANDLER": "users.exceptions.api_exception_handler",
}

# Disable throttling when running tests
if TESTING:
    REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {"anon": None, "uploads": None}

ROOT_URLCONF = 'roster_backend.urls'
WSGI_APPLICATION = 'roster_backend.wsgi.application'

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


# --- Database (Postgres when DATABASE_URL set; SQLite otherwise) ---
import dj_database_url

DB_URL = os.environ.get("DATABASE_URL", "").strip()
IS_POSTGRES = DB_URL.startswith("postgres://") or DB_URL.startswith("postgresql://")

if DB_URL:
    DATABASES = {
        "default": dj_database_url.parse(
            DB_URL,
            conn_max_age=600,
            ssl_require=IS_POSTGRES and _get_bool("DATABASE_SSL_REQUIRE", True),
        )
    }
else:
    # Default to SQLite for local dev/CI
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

if DATABASES["default"]["ENGINE"] == "django.db.backends.sqlite3":
    # Renumbering rewrites the whole table: take the write lock at BEGIN and
    # wait (seconds) instead of failing immediately when another writer holds it.
    DATABASES["default"].setdefault("OPTIONS", {}).update({
        "transaction_mode": "IMMEDIATE",
        "timeout": _get_int("SQLITE_BUSY_TIMEOUT", 20),
    })
    # Tests that run writers on several threads need a real file: the shared
    # in-memory test database reports "table is locked" instead of waiting.
    DATABASES["default"].setdefault("TEST", {}).setdefault("NAME", str(BASE_DIR / "test_db.sqlite3"))


LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Static & media
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / "staticfiles"

MEDIA_URL = "/media/"
MEDIA_ROOT = BASE_DIR / "media"

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# --- Photo storage ("local" or "s3") ---
PHOTO_STORAGE_MODE = os.environ.get("PHOTO_STORAGE_MODE", "local").strip().lower()
PHOTO_MAX_UPLOAD_SIZE = _get_int("PHOTO_MAX_UPLOAD_SIZE", 5 * 1024 * 1024)
PHOTO_ALLOWED_EXTENSIONS = ["jpg", "jpeg", "png", "gif", "webp"]

if PHOTO_STORAGE_MODE == "s3":
    INSTALLED_APPS += ["storages"]
    AWS_STORAGE_BUCKET_NAME = os.environ.get("AWS_STORAGE_BUCKET_NAME")
    AWS_S3_REGION_NAME = os.environ.get("AWS_S3_REGION_NAME", "ap-southeast-1")
    AWS_S3_SIGNATURE_VERSION = os.environ.get("AWS_S3_SIGNATURE_VERSION", "s3v4")
    AWS_S3_ADDRESSING_STYLE = os.environ.get("AWS_S3_ADDRESSING_STYLE", "virtual")
    AWS_QUERYSTRING_AUTH = _get_bool("AWS_QUERYSTRING_AUTH", False)  # clean URLs if files are public
    AWS_S3_FILE_OVERWRITE = False
    AWS_DEFAULT_ACL = None  # let bucket policy control ACLs

    # Credentials from env/role
    AWS_ACCESS_KEY_ID = os.environ.get("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY = os.environ.get("AWS_SECRET_ACCESS_KEY")

    # Optional: custom domain (CloudFront or S3 website)
    AWS_S3_CUSTOM_DOMAIN = os.environ.get("AWS_S3_CUSTOM_DOMAIN")


# --- Renumbering ---
RENUMBER_BATCH_SIZE = _get_int("RENUMBER_BATCH_SIZE", 500)
RENUMBER_LOCK_TIMEOUT_MS = _get_int("RENUMBER_LOCK_TIMEOUT_MS", 5000)


LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "django.request": {  # 500s, 404s with exceptions
            "handlers": ["console"],
            "level": "ERROR",
            "propagate": True,
        },
        "django": {
            "handlers": ["console"],
            "level": "INFO",
        },
        "users": {
            "handlers": ["console"],
            "level": os.environ.get("LOG_LEVEL", "INFO").upper(),
            "propagate": False,
        },
    },
}
