"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """Referenced offer, enquiry, property or concern does not exist"""

    pass


class ForbiddenError(DomainException):
    """Caller fails an ownership or role check"""

    pass


class PreconditionFailedError(DomainException):
    """State-machine guard violated (wrong status, expired offer, duplicate approval)"""

    pass


class ValidationFailureError(DomainException):
    """Offer terms are malformed and were rejected before any mutation"""

    pass


class InternalFailureError(DomainException):
    """Persistence or ledger collaborator failed"""

    pass
