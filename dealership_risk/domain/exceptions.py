"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidVisitError(DomainException):
    """Visit record is missing a required field or a value is out of range"""

    def __init__(self, message: str, visit_id=None):
        self.visit_id = visit_id
        if visit_id is not None:
            message = f"Visit {visit_id}: {message}"
        super().__init__(message)


class InsufficientDataError(DomainException):
    """No visit history to extract signals from"""

    pass


class InvalidParametersError(DomainException):
    """Scoring parameters cannot be used for normalization"""

    pass
