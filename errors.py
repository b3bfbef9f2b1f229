"""
errors.py
Exception types raised by the membership, reporting and data access layers.
"""


class GymError(Exception):
    """Base class."""


class InvalidDateError(GymError, ValueError):
    pass


class NotFoundError(GymError):
    pass


class MissingPlanError(NotFoundError):
    pass


class MissingClientError(NotFoundError):
    pass


class DataAccessError(GymError):
    pass


class OperationNotAllowedError(GymError):
    pass


class ValidationError(GymError, ValueError):
    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(" ".join(self.errors))
