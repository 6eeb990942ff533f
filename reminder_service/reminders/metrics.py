from prometheus_client import Counter, Histogram


scheduler_runs_total = Counter(
    "reminder_scheduler_runs_total",
    "Total scheduler passes",
)

scheduler_runs_skipped_total = Counter(
    "reminder_scheduler_runs_skipped_total",
    "Scheduler passes skipped because another pass held the run lock",
)

scheduler_run_duration_seconds = Histogram(
    "reminder_scheduler_run_duration_seconds",
    "Wall time of one scheduler pass",
)

reminders_created_total = Counter(
    "reminders_created_total",
    "Total reminders created via API",
)

reminders_fired_total = Counter(
    "reminders_fired_total",
    "Total reminder occurrences fired by the scheduler",
)

reminders_dispatch_success_total = Counter(
    "reminders_dispatch_success_total",
    "Total successful push dispatches",
)

reminders_dispatch_failed_total = Counter(
    "reminders_dispatch_failed_total",
    "Total transient push dispatch failures",
)

subscriptions_pruned_total = Counter(
    "reminder_subscriptions_pruned_total",
    "Subscriptions deleted after a terminal delivery failure",
)

reminders_persistence_errors_total = Counter(
    "reminders_persistence_errors_total",
    "Reminder store reads or writes that failed during a scheduler pass",
)

reminders_write_conflicts_total = Counter(
    "reminders_write_conflicts_total",
    "Reminder writes rejected by the optimistic version check",
)
