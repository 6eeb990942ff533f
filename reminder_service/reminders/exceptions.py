class ReminderServiceError(Exception):
    pass


class PersistenceError(ReminderServiceError):
    """The store could not be read or written."""


class ReminderNotFoundError(ReminderServiceError):
    def __init__(self, reminder_id: str):
        super().__init__(f"Reminder not found: {reminder_id}")
        self.reminder_id = reminder_id


class ReminderConflictError(ReminderServiceError):
    def __init__(self, reminder_id: str):
        super().__init__(f"Reminder {reminder_id} kept changing concurrently; try again")
        self.reminder_id = reminder_id


class ChannelConfigurationError(ReminderServiceError):
    """The delivery channel is missing credentials or is misconfigured."""
