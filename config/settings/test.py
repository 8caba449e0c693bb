from .base import *  # noqa: F401,F403

SECRET_KEY = "test-secret-key"
DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
        "ATOMIC_REQUESTS": True,
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

DISTANCE_BACKEND = ""
DISPATCH_NOTIFICATION_EMAIL = "dispatch@test.local"
SYSTEM_ADMIN_USER_IDS = []
SYSTEM_ADMIN_EMAILS = ["root@test.local"]
