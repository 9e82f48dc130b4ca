"""Exception types raised at Taskflow storage and query boundaries."""


class TaskflowError(Exception):
    """Base error for task synchronization and reminders."""


class TaskStorageError(TaskflowError):
    """Raised when persisting a document's task records fails."""

    def __init__(self, document_id: str, message: str) -> None:
        super().__init__(f"{message}: document_id={document_id}")
        self.document_id = document_id


class ReminderQueryError(TaskflowError):
    """Raised when the due-between lookup for a reminder window fails."""
