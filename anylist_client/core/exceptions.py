__all__ = [
    "ReadOnlyError",
    "ValidationError",
    "AuthenticationError",
    "TokenRefreshError",
    "TransportError",
    "SyncError",
    "PersistenceError",
]


class ReadOnlyError(Exception):
    """
    Raised when user attempts to write a field which is read-only, or a
    field which is locked after its first assignment.
    """

    field: str

    def __init__(self, field: str, entity: object):
        self.field = field
        super().__init__(f"Attempt to set read-only field {field} of {entity}")


class ValidationError(Exception):
    """
    Raised before submitting operations when an entity is not in a state
    which can be synchronized, e.g. an {obj}`Item` saved before it was
    added to a {obj}`ShoppingList`.
    """

    errors: list[str]

    def __init__(self, errors: list[str]):
        self.errors = errors
        errors_str = "\n".join(errors)
        super().__init__(f"Errors found during validation: {errors_str}")


class AuthenticationError(Exception):
    """
    Raised when AnyList rejects the account credentials, or returns a token
    response which can't be parsed.
    """


class TokenRefreshError(AuthenticationError):
    """
    Raised when refreshing the access token fails for a reason other than
    an expired refresh token, which instead falls back to logging in with
    credentials.
    """


class TransportError(Exception):
    """
    Raised upon a network failure or an HTTP status which was not handled.
    """

    status: int | None
    """HTTP status code, or `None` if no response was received"""

    url: str | None

    def __init__(
        self, message: str, *, status: int | None = None, url: str | None = None
    ):
        self.status = status
        self.url = url
        super().__init__(message)


class SyncError(Exception):
    """
    Raised when AnyList rejects a batch of operations. Local state is left
    as it was before the batch was submitted.
    """

    handler_ids: list[str]
    status: int | None

    def __init__(self, handler_ids: list[str], status: int | None):
        self.handler_ids = handler_ids
        self.status = status
        super().__init__(
            f"Operations {handler_ids} rejected with status code {status}"
        )


class PersistenceError(Exception):
    """
    Raised internally when stored credentials can't be read, decrypted or
    written. Never propagated to the user: the session proceeds as if no
    credentials were stored.
    """


def _assert_validate(cond: bool, *errors: str):
    """
    Helper to raise a validation error if the condition is False.
    """
    if cond is not True:
        raise ValidationError(list(errors))
