from datetime import timedelta
from pathlib import Path

from celery.schedules import crontab

from spacehub.config import get_env

BASE_DIR = Path(__file__).resolve().parent.parent

env = get_env()

SECRET_KEY = env.django_secret_key
DEBUG = env.django_debug
ALLOWED_HOSTS = env.allowed_hosts
ENABLE_OPERATOR = env.enable_operator
OPS_ALLOWED_HOSTS = env.ops_allowed_hosts
ENABLE_DJANGO_ADMIN = env.enable_django_admin

INSTALLED_APPS = [
    "rest_framework_simplejwt",
    "django_filters",
    "operator_core",
    "operator_bookings",
    "operator_finance",
    "operator_settings",
    "bookings.apps.BookingsConfig",
    "payments.apps.PaymentsConfig",
    "users",
    "spaces",
    "notifications",
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "corsheaders",
    "core",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "operator_core.middleware.OpsOnlyRouteGatingMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "spacehub.urls"
WSGI_APPLICATION = "spacehub.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

DATABASES = {"default": env.database}

LANGUAGE_CODE = "en-au"
TIME_ZONE = env.time_zone
USE_I18N = True
USE_TZ = True

STATIC_URL = "/dj-static/"
STATIC_ROOT = BASE_DIR / "static"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.SearchFilter",
        "rest_framework.filters.OrderingFilter",
    ],
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 50,
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
        "rest_framework.throttling.ScopedRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": "100/hour",
        "user": "1000/hour",
        "operator": "6000/hour",
    },
}

CORS_ALLOWED_ORIGINS = [env.frontend_origin]

AUTH_USER_MODEL = "users.User"
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(hours=8),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=7),
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.redis.RedisCache",
        "LOCATION": env.redis_url,
    }
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "root": {"handlers": ["console"], "level": env.log_level},
}

# --- Celery / Broker (overridable in tests)
REDIS_URL = env.redis_url
CELERY_BROKER_URL = env.celery_broker_url or REDIS_URL
CELERY_RESULT_BACKEND = env.celery_result_backend or REDIS_URL
CELERY_BEAT_SCHEDULE = {
    "payments_reconcile_booking_fees_nightly": {
        "task": "payments.reconcile_booking_fees",
        "schedule": crontab(hour=3, minute=30),
    },
}
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
FRONTEND_ORIGIN = env.frontend_origin

# --- Booking fees ---
# Fallback rates (Decimal fractions, 0.12 == 12%) used when no FeeConfig is active.
DEFAULT_SERVICE_RATE = env.default_service_rate
DEFAULT_PARTNER_COMMISSION_RATE = env.default_partner_commission_rate
DEFAULT_PROCESSING_RATE = env.default_processing_rate
DEFAULT_TAX_RATE = env.default_tax_rate
FEE_SETTINGS_CACHE_TTL_SECONDS = env.fee_settings_cache_ttl_seconds

# Processor's own cut, only used to estimate net earnings without ledger data.
PROCESSOR_DOMESTIC_RATE = env.processor_domestic_rate
PROCESSOR_DOMESTIC_FIXED_FEE = env.processor_domestic_fixed_fee
PROCESSOR_INTERNATIONAL_RATE = env.processor_international_rate
PROCESSOR_INTERNATIONAL_FIXED_FEE = env.processor_international_fixed_fee

REFUND_LOCK_TIMEOUT_SECONDS = env.refund_lock_timeout_seconds
PLATFORM_CURRENCY = env.platform_currency

# --- Stripe ---
STRIPE_SECRET_KEY = env.stripe_secret_key
STRIPE_ENV = env.stripe_env
STRIPE_TIMEOUT_SECONDS = env.stripe_timeout_seconds
STRIPE_MAX_NETWORK_RETRIES = env.stripe_max_network_retries
