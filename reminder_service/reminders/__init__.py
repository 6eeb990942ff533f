"""Reminder scheduler module (evaluator, recurrence, dispatcher, scheduler loop, API, Celery tick).

The scheduler can run inside the API process (periodic asyncio task) or as a
separate Celery worker driven by Celery beat. Both entry points call
``ReminderScheduler.run_once`` and share the same run lock.
"""
