"""
Claims backend exceptions.

The reconciliation engine itself never raises for bad data; these are raised by
the storage collaborators and translated to HTTP errors by the API layer.
"""


class ClaimsError(Exception):
    """Base class for all claims backend errors"""
    pass


class StorageError(ClaimsError):
    """A claim or setting could not be loaded or saved. Safe to retry."""
    pass


class InvalidDateError(ClaimsError, ValueError):
    """A date key is not a valid YYYY-MM-DD calendar date"""
    pass


class AdminSecretError(ClaimsError):
    """Admin secret change was refused"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
