"""Exception types raised by the facade.

Only construction failures surface as exceptions.  Steady-state misuse
(stale ids, calls after destroy) degrades to defaults instead.
"""

from __future__ import annotations


class GeoFacadeError(Exception):
    """Base class for facade errors."""


class InitializationError(GeoFacadeError):
    """Backend failed to load or construct.  Fatal to the facade instance.

    The backend-reported cause is kept on ``cause`` (and chained as
    ``__cause__`` when raised with ``from``).
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class BackendRegistrationError(GeoFacadeError):
    """Raised when a backend name is unknown or registered twice."""
