# addons/exceptions.py


class PayrollError(Exception):
    """Base class for errors raised by the payroll engine."""

    status_code = 400

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        data = {
            "status": self.status_code,
            "isError": True,
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.details is not None:
            data["details"] = self.details
        return data


class InputDataMissing(PayrollError):
    """An employee lacks the data needed to compute payroll (e.g. no salary profile)."""
    status_code = 422


class InvalidRate(PayrollError):
    status_code = 422


class SnapshotUnparseable(PayrollError):
    status_code = 422


class IllegalStateTransition(PayrollError):
    status_code = 409


class DuplicateGeneration(PayrollError):
    status_code = 409


class GenerationNotConfirmed(PayrollError):
    status_code = 400


class RecordNotFound(PayrollError):
    status_code = 404
