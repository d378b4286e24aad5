"""
DisasterGuard Error Taxonomy
============================

Every failed operation raises one of these named conditions. None of them
is transient: callers decide whether to retry. Each class carries the HTTP
status the API layer reports it with.
"""


class DisasterGuardError(Exception):
    """Base class for all caller-facing protocol failures."""
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    @property
    def code(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict:
        return {'error': self.code, 'message': self.message}


# Policy ledger
class InvalidCoverage(DisasterGuardError):
    """Coverage amount must be a positive integer."""


class InsufficientPremium(DisasterGuardError):
    """Paid amount is below the computed premium."""
    status_code = 402


class UnknownPolicy(DisasterGuardError):
    status_code = 404


class PolicyNotActive(DisasterGuardError):
    """Policy was already settled or cancelled."""
    status_code = 409


class NotPolicyholder(DisasterGuardError):
    status_code = 403


# Event registry
class UnknownEvent(DisasterGuardError):
    status_code = 404


class DuplicateAttestation(DisasterGuardError):
    status_code = 409


class AlreadyValidated(DisasterGuardError):
    status_code = 409


class InvalidSignature(DisasterGuardError):
    status_code = 401


# Settlement
class EventNotValidated(DisasterGuardError):
    status_code = 409


class LocationMismatch(DisasterGuardError):
    pass


class DisasterTypeMismatch(DisasterGuardError):
    pass


# Engines / feeds
class UnsupportedLocation(DisasterGuardError):
    status_code = 404


class NoDataAvailable(DisasterGuardError):
    status_code = 404
