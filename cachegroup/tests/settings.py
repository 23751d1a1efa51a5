"""Django settings for the cache group test suite."""

SECRET_KEY = "cachegroup-tests"

INSTALLED_APPS = [
    "cachegroup",
    "cachegroup.tests.discovery",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "cachegroup-tests",
        "TIMEOUT": 300,
    },
}

USE_TZ = True
