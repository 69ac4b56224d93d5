"""
Celery Beat Schedule Configuration

Defines periodic tasks that run on a schedule.
"""

from celery.schedules import crontab

# Schedule configuration
beat_schedule = {
    # Jobs whose runner died stay "running" forever; fail them so the
    # workflows polling them can finish.
    'fail-stale-work-queue-jobs': {
        'task': 'tasks.fail_stale_jobs',
        'schedule': crontab(minute='*/5'),
    },
    # Re-drive workflow runs left "running" after a worker crash.
    'resume-stalled-workflows': {
        'task': 'tasks.resume_stalled_workflows',
        'schedule': crontab(minute='*/10'),
    },
    # Check-in reminders - hourly, matched against each client's reminder time (UTC)
    'send-check-in-reminders': {
        'task': 'tasks.send_check_in_reminders',
        'schedule': crontab(minute=0),
    },
}
