"""Autosave errors."""


class StorageFailure(Exception):
    """The store rejected or could not complete a flush/restore transaction.

    The transaction has been rolled back in full when this is raised.
    """

    def __init__(self, draft_id: str, cause: BaseException, operation: str = "save") -> None:
        super().__init__(f"Storage operation '{operation}' on draft '{draft_id}' failed: {cause}")
        self.draft_id = draft_id
        self.cause = cause
        self.operation = operation
