from celery import Celery
from celery.schedules import crontab
from dotenv import load_dotenv
import os

load_dotenv()

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery('tasks', broker=REDIS_URL, backend=REDIS_URL, include=['pantry_api.tasks'])


celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    broker_connection_retry_on_startup=True,
    beat_schedule={
        'daily-expiry-scan': {
            'task': 'tasks.scan_expiring_products',
            'schedule': crontab(hour=7, minute=0),
        },
    },
)
