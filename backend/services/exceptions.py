"""Exceptions raised by the service layer and translated to HTTP errors by the API."""


class NotLinkedError(Exception):
    """The user has no institution link (or none matching the requested institution)."""

    def __init__(self, user_id: str, institution_id: str | None = None):
        self.user_id = user_id
        self.institution_id = institution_id
        if institution_id:
            message = f"No linked institution {institution_id} for user {user_id}"
        else:
            message = f"No linked institution for user {user_id}"
        super().__init__(message)


class LinkChangedError(Exception):
    """The link was re-linked with a new access token while a sync was running."""

    def __init__(self, user_id: str, institution_id: str):
        self.user_id = user_id
        self.institution_id = institution_id
        super().__init__(
            f"Institution {institution_id} for user {user_id} was re-linked during sync"
        )


class StorageError(Exception):
    """A database write failed while applying sync changes; the batch was rolled back."""

    pass


class SyncInProgressError(Exception):
    """Another sync for the same (user, institution) did not finish within the lock timeout."""

    def __init__(self, user_id: str, institution_id: str):
        self.user_id = user_id
        self.institution_id = institution_id
        super().__init__(
            f"Sync already in progress for user {user_id}, institution {institution_id}"
        )
