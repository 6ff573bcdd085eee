"""Background scheduler for periodic cleanup tasks."""

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from captcha_provider.config import settings
from captcha_provider.database import SessionLocal
from captcha_provider.services.image_captcha_service import cleanup_expired_requests
from captcha_provider.services.pow_service import cleanup_expired_challenges

logger = structlog.get_logger()

scheduler = BackgroundScheduler()


def cleanup_job() -> None:
    """Drop pending captcha requests past their deadline and stale PoW challenges."""
    db = SessionLocal()
    try:
        requests = cleanup_expired_requests(db)
        challenges = cleanup_expired_challenges(db)
        if requests or challenges:
            logger.info("cleanup_completed", captcha_requests=requests, pow_challenges=challenges)
    except Exception as e:
        logger.error("cleanup_failed", error=str(e))
    finally:
        db.close()


def start_scheduler() -> None:
    """Start the background scheduler."""
    scheduler.add_job(
        cleanup_job,
        trigger=IntervalTrigger(hours=settings.cleanup_interval_hours),
        id="cleanup_expired_captchas",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("scheduler_started", interval_hours=settings.cleanup_interval_hours)


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    scheduler.shutdown()
    logger.info("scheduler_stopped")
