"""
Exceptions raised by the account, content and upload layers.

Views catch these and decide how to present them (flash + re-render,
JSON body, 404, 500 page).
"""


class PenboardError(Exception):
    """Base class for every error the services raise on purpose."""


class ValidationError(PenboardError):
    """Bad input shape, e.g. the two passwords differ."""


class DuplicateUserError(PenboardError):
    pass


class NotFoundError(PenboardError):
    pass


class InvalidCredentialsError(PenboardError):
    pass


class PersistenceError(PenboardError):
    """The store failed (locked DB, missing table, I/O …)."""


class UploadError(PenboardError):
    """The asset host did not accept the file."""
