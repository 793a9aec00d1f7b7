"""
Celery worker and beat schedule for periodic maintenance (expired session purge).
"""
from celery import Celery
import logging
from .config import settings
from .database import SessionLocal
from .auth import purge_expired_sessions

logger = logging.getLogger(__name__)

celery_app = Celery(
    "twx",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
)


@celery_app.task(name="purge_expired_sessions")
def purge_expired_sessions_task():
    """Delete login sessions whose expiry has passed."""
    db = SessionLocal()

    try:
        removed = purge_expired_sessions(db)
        db.commit()
        logger.info("sessions.purge removed=%s", removed)

    except Exception:
        db.rollback()
        logger.exception("Error purging expired sessions")
        raise

    finally:
        db.close()

    return {"removed": removed}


# Schedule periodic processing
celery_app.conf.beat_schedule = {
    'purge-expired-sessions': {
        'task': 'purge_expired_sessions',
        'schedule': float(settings.SESSION_PURGE_INTERVAL_SECONDS),
    },
}
