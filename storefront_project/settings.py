"""
Django settings for storefront_project.
"""

from pathlib import Path
from decouple import config
import socket
from django.utils.translation import gettext_lazy as _

BASE_DIR = Path(__file__).resolve().parent.parent

# Ensure logs folder exists
LOG_DIR = BASE_DIR / "logs"
LOG_DIR.mkdir(exist_ok=True)

SECRET_KEY = config("SECRET_KEY", default="django-insecure-3v!k8w#q2m@f0x_storefront_dev_only_key_r7t9p")
DEBUG = config("DEBUG", default=True, cast=bool)

ALLOWED_HOSTS = config(
    "ALLOWED_HOSTS",
    default="localhost,127.0.0.1",
    cast=lambda v: [s.strip() for s in v.split(",")],
)

LOCALE_PATHS = [
    BASE_DIR / 'locale',
]

LANGUAGES = [
    ('pt-br', _('Brazilian Portuguese')),
    ('en', _('English')),
]

# --------------------
# Apps
# --------------------
DJANGO_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
]

THIRD_PARTY_APPS = [
    "rest_framework",
    "rest_framework.authtoken",
    "corsheaders",
    "channels",
]

LOCAL_APPS = [
    "apps.authentication",
    "apps.restaurants",
    "apps.menu",
    "apps.orders",
    "apps.payments",
    "apps.cashier",
    "apps.notifications",
    "apps.reports",
]

INSTALLED_APPS = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    'django.middleware.locale.LocaleMiddleware',
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "storefront_project.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
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

WSGI_APPLICATION = "storefront_project.wsgi.application"
ASGI_APPLICATION = "storefront_project.asgi.application"

# --------------------
# Database
# --------------------
DATABASES = {
    "default": {
        "ENGINE": config("DB_ENGINE", default="django.db.backends.mysql"),
        "NAME": config("DB_NAME", default="restaurant_storefront"),
        "USER": config("DB_USER", default="storefront"),
        "PASSWORD": config("DB_PASSWORD", default="storefront"),
        "HOST": config("DB_HOST", default="localhost"),
        "PORT": config("DB_PORT", default="3306"),
        "OPTIONS": {
            "charset": "utf8mb4",
            "init_command": "SET sql_mode='STRICT_TRANS_TABLES'",
        },
    }
}

# --------------------
# Authentication
# --------------------
AUTH_USER_MODEL = "authentication.User"

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator", "OPTIONS": {"min_length": 6}},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# --------------------
# Internationalization
# --------------------
LANGUAGE_CODE = "pt-br"
TIME_ZONE = config("TIME_ZONE", default="America/Sao_Paulo")
USE_I18N = True
USE_TZ = True

# --------------------
# Static & Media
# --------------------
STATIC_URL = "/static/"
STATICFILES_DIRS = [BASE_DIR / "static"]
STATIC_ROOT = BASE_DIR / "staticfiles"

MEDIA_URL = "/media/"
MEDIA_ROOT = BASE_DIR / "media"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# --------------------
# Django REST Framework
# --------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.TokenAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
        "rest_framework.renderers.BrowsableAPIRenderer",
    ],
}

# --------------------
# Login URLs
# --------------------
LOGIN_URL = "/auth/login/"
LOGIN_REDIRECT_URL = "/dashboard/"
LOGOUT_REDIRECT_URL = "/auth/login/"

# --------------------
# Email
# --------------------
EMAIL_BACKEND = config("EMAIL_BACKEND", default="django.core.mail.backends.console.EmailBackend")
EMAIL_HOST = config("EMAIL_HOST", default="smtp.gmail.com")
EMAIL_PORT = config("EMAIL_PORT", default=587, cast=int)
EMAIL_USE_TLS = config("EMAIL_USE_TLS", default=True, cast=bool)
EMAIL_HOST_USER = config("EMAIL_HOST_USER", default="")
EMAIL_HOST_PASSWORD = config("EMAIL_HOST_PASSWORD", default="")
DEFAULT_FROM_EMAIL = config("DEFAULT_FROM_EMAIL", default="noreply@storefront.local")

# --------------------
# Logging
# --------------------
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {process:d} {thread:d} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "file": {
            "level": "INFO",
            "class": "logging.FileHandler",
            "filename": LOG_DIR / "django.log",
            "formatter": "verbose",
        },
        "console": {
            "level": "DEBUG",
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {"handlers": ["file", "console"], "level": "INFO", "propagate": True},
        "apps": {"handlers": ["file", "console"], "level": "DEBUG", "propagate": False},
        "storefront": {"handlers": ["file", "console"], "level": "DEBUG", "propagate": True},
    },
}

# --------------------
# Security (production)
# --------------------
if not DEBUG:
    SECURE_BROWSER_XSS_FILTER = True
    SECURE_CONTENT_TYPE_NOSNIFF = True
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_SECONDS = 31536000
    SECURE_SSL_REDIRECT = True
    CSRF_COOKIE_SECURE = True
    X_FRAME_OPTIONS = "DENY"

# --------------------
# Storefront Settings
# --------------------
STOREFRONT_SETTINGS = {
    "CURRENCY": config("STOREFRONT_CURRENCY", default="BRL"),
    # Web client, used in password reset links
    "FRONTEND_URL": config("FRONTEND_URL", default="http://localhost:3000"),
    "ORDER_STATUSES": [
        ("pending_payment", "Pending payment"),
        ("pending", "Pending"),
        ("confirmed", "Confirmed"),
        ("preparing", "Preparing"),
        ("ready", "Ready"),
        ("delivering", "Out for delivery"),
        ("delivered", "Delivered"),
        ("cancelled", "Cancelled"),
    ],
    "USER_ROLES": [
        ("customer", "Customer"),
        ("restaurant_admin", "Restaurant Admin"),
        ("system_admin", "System Admin"),
    ],
    # (min, max) minutes
    "DEFAULT_DELIVERY_TIME": (30, 45),
    "PICKUP_TIME": (15, 30),
    "ZONE_TIME_SPREAD": 15,
    "DEFAULT_OPEN_TIME": "09:00",
    "DEFAULT_CLOSE_TIME": "18:00",
    "DEFAULT_NOTIFICATION_SOUND_URL": config(
        "DEFAULT_NOTIFICATION_SOUND_URL", default="/static/sounds/new-order.mp3"
    ),
    "DEFAULT_PAYMENT_METHODS": [
        ("Dinheiro", "cash", "Pay with cash on delivery or pickup", "banknote"),
        ("PIX", "pix", "Instant transfer with PIX", "qr-code"),
        ("Pagamento Online", "online", "Credit or debit card through Mercado Pago", "credit-card"),
        ("Pagamento com cartão na entrega", "card_on_delivery", "Card machine on delivery", "smartphone"),
    ],
}

# --------------------
# Payment provider
# --------------------
MERCADO_PAGO_CONFIG = {
    "API_URL": config("MERCADO_PAGO_API_URL", default="https://api.mercadopago.com"),
    # Used when a restaurant has not saved its own access token
    "ACCESS_TOKEN": config("MERCADO_PAGO_ACCESS_TOKEN", default=""),
    # Signs webhook notifications; restaurants may save their own
    "WEBHOOK_SECRET": config("MERCADO_PAGO_WEBHOOK_SECRET", default=""),
    "STATEMENT_DESCRIPTOR_FALLBACK": "PEDIDO123",
    "TIMEOUT": config("MERCADO_PAGO_TIMEOUT", default=30, cast=int),
}

# --------------------
# Geocoding
# --------------------
GEOCODING_CONFIG = {
    "GOOGLE_API_URL": "https://maps.googleapis.com/maps/api/geocode/json",
    "GOOGLE_MAPS_API_KEY": config("GOOGLE_MAPS_API_KEY", default=""),
    "NOMINATIM_URL": config("NOMINATIM_URL", default="https://nominatim.openstreetmap.org/search"),
    "USER_AGENT": config("GEOCODING_USER_AGENT", default="restaurant-storefront/1.0"),
    "COUNTRY": config("GEOCODING_COUNTRY", default="BR"),
    "TIMEOUT": config("GEOCODING_TIMEOUT", default=10, cast=int),
}

# --------------------
# Cache, Sessions & Channels
# --------------------
# Default: use DB sessions
SESSION_ENGINE = "django.contrib.sessions.backends.db"

REDIS_HOST = config("REDIS_HOST", default="127.0.0.1")
REDIS_PORT = config("REDIS_PORT", default=6379, cast=int)


def redis_running(host=REDIS_HOST, port=REDIS_PORT):
    """Check if Redis server is running before using it."""
    try:
        s = socket.create_connection((host, port), timeout=1)
        s.close()
        return True
    except OSError:
        return False


if redis_running():
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": f"redis://{REDIS_HOST}:{REDIS_PORT}/1",
        }
    }
    SESSION_ENGINE = "django.contrib.sessions.backends.cache"
    SESSION_CACHE_ALIAS = "default"
    CHANNEL_LAYERS = {
        "default": {
            "BACKEND": "channels_redis.core.RedisChannelLayer",
            "CONFIG": {"hosts": [(REDIS_HOST, REDIS_PORT)]},
        },
    }
else:
    # Fallback if Redis is not running
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        }
    }
    CHANNEL_LAYERS = {
        "default": {"BACKEND": "channels.layers.InMemoryChannelLayer"},
    }

# ===============================
# Session and Security Settings
# ===============================

# Carts live in the session, keep them for a week
SESSION_COOKIE_AGE = 60 * 60 * 24 * 7
SESSION_COOKIE_SECURE = not DEBUG
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = "Lax"


# --------------------
# CORS
# --------------------
CORS_ALLOWED_ORIGINS = config(
    "CORS_ALLOWED_ORIGINS",
    default="http://localhost:3000,http://127.0.0.1:3000",
    cast=lambda v: [s.strip() for s in v.split(",") if s.strip()],
)
CORS_ALLOW_CREDENTIALS = True
