"""
Add Celery Beat schedules for upload housekeeping.

This migration creates periodic task schedules for:
- Reclaiming idle chunked upload sessions (hourly)
- Removing orphaned chunk artifacts (every 6 hours)
"""

from django.db import migrations

TASK_NAMES = [
    "Videos: Sweep Idle Upload Sessions",
    "Videos: Sweep Orphaned Upload Chunks",
]


def create_periodic_tasks(apps, schema_editor):
    """Create periodic tasks for upload housekeeping."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule_1hour, _ = IntervalSchedule.objects.get_or_create(
        every=1,
        period="hours",
    )
    schedule_6hours, _ = IntervalSchedule.objects.get_or_create(
        every=6,
        period="hours",
    )

    PeriodicTask.objects.get_or_create(
        name="Videos: Sweep Idle Upload Sessions",
        defaults={
            "task": "videos.tasks.sweep_idle_upload_sessions",
            "interval": schedule_1hour,
            "enabled": True,
            "description": (
                "Discards chunked upload sessions with no activity for longer "
                "than CHUNKED_UPLOAD_IDLE_TIMEOUT_SECONDS, with their chunks."
            ),
        },
    )

    PeriodicTask.objects.get_or_create(
        name="Videos: Sweep Orphaned Upload Chunks",
        defaults={
            "task": "videos.tasks.sweep_orphaned_upload_chunks",
            "interval": schedule_6hours,
            "enabled": True,
            "description": (
                "Safety net cleanup for chunk artifacts whose session no longer "
                "exists. Handles crashes between chunk write and ledger update."
            ),
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    """Remove upload housekeeping tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name__in=TASK_NAMES).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("videos", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
