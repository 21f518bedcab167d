"""Error taxonomy shared by the storage boundary, the data layer and the API.

Every error carries the HTTP status it is rendered with. Authorization
failures always render the same generic message so a caller cannot tell a
forbidden row from a missing one.
"""


class EHRError(Exception):
    status_code = 500

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(EHRError):
    """A write violates a structural constraint."""

    status_code = 422


class ReferentialIntegrityError(EHRError):
    """A write references a parent row that does not exist."""

    status_code = 409


class UniquenessError(EHRError):
    """A write duplicates a unique key."""

    status_code = 409


class AuthorizationError(EHRError):
    status_code = 403
    public_message = "You do not have permission to perform this action"


class IdentityResolutionError(AuthorizationError):
    """The caller is authenticated but has no staff profile bound."""


class NotFoundError(EHRError):
    status_code = 404
