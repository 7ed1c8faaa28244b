# shlokayug/scheduler.py
import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from shlokayug.database import REVOKED_TOKENS, delete_document, find_documents
from shlokayug.utils import is_past

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def purge_revoked_tokens():
    """Drop blacklist entries for tokens that have expired anyway"""
    purged = 0
    for entry in find_documents(REVOKED_TOKENS):
        if is_past(entry.get('expires_at')):
            delete_document(REVOKED_TOKENS, entry['id'])
            purged += 1
    logger.info(f"Purged {purged} expired revoked tokens")
    return purged


def _in_app_context(app, func, name):
    def job():
        with app.app_context():
            try:
                func()
            except Exception as e:
                logger.error(f"❌ Scheduled job {name} failed: {e}")
    return job


def register_jobs(app):
    from shlokayug.certificates import sync_master_report
    from shlokayug.enrollments import expire_subscriptions
    from shlokayug.videos import refresh_expiring_urls

    jobs = [
        ('refresh_urls', 'Refresh presigned video URLs', refresh_expiring_urls,
         IntervalTrigger(hours=app.config['URL_REFRESH_INTERVAL_HOURS'])),
        ('expire_subscriptions', 'Expire lapsed subscriptions', expire_subscriptions,
         IntervalTrigger(hours=1)),
        ('purge_revoked_tokens', 'Purge expired revoked tokens', purge_revoked_tokens,
         CronTrigger(hour=3)),
        ('sync_certificate_report', 'Sync certificate master report', sync_master_report,
         IntervalTrigger(minutes=30)),
    ]
    for job_id, name, func, trigger in jobs:
        scheduler.add_job(
            func=_in_app_context(app, func, job_id),
            trigger=trigger,
            id=job_id,
            name=name,
            replace_existing=True
        )


def start_scheduler(app):
    if scheduler.running:
        return
    register_jobs(app)
    scheduler.start()
    logger.info("🚀 Background scheduler started")
    atexit.register(lambda: scheduler.shutdown(wait=False))


def scheduler_status():
    jobs = []
    for job in scheduler.get_jobs():
        # pending jobs have no next_run_time until the scheduler starts
        next_run = getattr(job, 'next_run_time', None)
        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': next_run.isoformat() if next_run else None,
            'trigger': str(job.trigger)
        })
    return {'running': scheduler.running, 'jobs': jobs}
