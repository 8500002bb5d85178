from datetime import timedelta
from pathlib import Path

from decouple import config
from kombu import Queue

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Quick-start development settings - unsuitable for production
SECRET_KEY = config('SECRET_KEY', default='tracker-insecure-dev-key')

DEBUG = config('DEBUG', default=False, cast=bool)

# Application definition
INSTALLED_APPS = [
    # Local
    'tracker',
]

# The roster lives in memory; no database is configured.
DATABASES = {}

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Logging
LOG_LEVEL = config('LOG_LEVEL', default='INFO')
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'tracker': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
        },
    },
}

# Codeforces
CODEFORCES_API_URL = config('CODEFORCES_API_URL', default='https://codeforces.com/api')
CODEFORCES_TIMEOUT_SECONDS = config('CODEFORCES_TIMEOUT_SECONDS', default=10, cast=int)
CODEFORCES_CACHE_TTL_SECONDS = config('CODEFORCES_CACHE_TTL_SECONDS', default=300, cast=int)
CF_SYNC_SUBMISSIONS_COUNT = config('CF_SYNC_SUBMISSIONS_COUNT', default=1000, cast=int)

# Sync engine
SYNC_PACING_DELAY_MS = config('SYNC_PACING_DELAY_MS', default=500, cast=int)
INACTIVITY_WINDOW_DAYS = config('INACTIVITY_WINDOW_DAYS', default=30, cast=int)
AUTO_SYNC_INTERVAL_MINUTES = config('AUTO_SYNC_INTERVAL_MINUTES', default=60, cast=int)
ROSTER_SEED_ON_STARTUP = config('ROSTER_SEED_ON_STARTUP', default=True, cast=bool)
ROSTER_SYNC_ON_STARTUP = config('ROSTER_SYNC_ON_STARTUP', default=False, cast=bool)

# Celery Configuration
CELERY_BROKER_URL = config('CELERY_BROKER_URL', default='redis://localhost:6379/0')
CELERY_RESULT_BACKEND = config('CELERY_RESULT_BACKEND', default='redis://localhost:6379/0')
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_DEFAULT_QUEUE = 'celery'
CELERY_TASK_QUEUES = (
    Queue('celery'),
    Queue('sync_fast'),
)
CELERY_TASK_ROUTES = {
    'tracker.tasks.sync_student': {'queue': 'sync_fast'},
    'tracker.tasks.sync_all_students': {'queue': 'celery'},
}
CELERY_BEAT_SCHEDULE = {
    'sync-students-periodically': {
        'task': 'tracker.tasks.sync_all_students',
        'schedule': timedelta(minutes=AUTO_SYNC_INTERVAL_MINUTES),
    },
}
