"""
exceptions.py - Error types raised by the sdb lookup pipeline

Fatal errors abort processing of a single target. Expected outcomes such as
"already processed" or "no counterpart in this catalogue" are not exceptions.
"""


class SdbLookupError(Exception):
    """Base class for errors raised by the sdb lookup pipeline."""
    pass


class InvalidTargetError(SdbLookupError, ValueError):
    """Raised when a target is given with neither a usable name nor coordinates."""
    pass


class ResolutionError(SdbLookupError):
    """Raised when no position can be formed for a target."""
    pass


class IdentifierConflictError(SdbLookupError):
    """Raised when an external id is already bound to a different sdbid."""

    def __init__(self, xid: str, sdbid: str, existing_sdbid: str):
        self.xid = xid
        self.sdbid = sdbid
        self.existing_sdbid = existing_sdbid
        super().__init__(
            f"xid '{xid}' is bound to {existing_sdbid}, not {sdbid}")


class ServiceUnavailableError(SdbLookupError):
    """Raised when an external service keeps failing after all retries."""
    pass
