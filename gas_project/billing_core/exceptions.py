class BillingError(Exception):
    """Base for every failure the billing engine reports to its callers.

    ``context`` carries the numbers behind the failure (attempted amount,
    computed limit, ...) so the caller can render a precise explanation.
    """
    code = "error"

    def __init__(self, message, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self):
        return self.message


class InputValidationError(BillingError):
    """Raised for malformed input (missing id, non-numeric amount, ...)."""
    code = "validation_error"


class BusinessRuleViolation(BillingError):
    """Raised when a write would break a billing rule."""
    code = "business_rule"


class ReceivedExceedsDelivered(BusinessRuleViolation):
    """Raised when empty cylinders received would exceed cylinders delivered."""
    pass


class PaymentExceedsRemaining(BusinessRuleViolation):
    """Raised when a payment is larger than the bill's remaining amount."""
    pass


class FinanciallyLocked(BusinessRuleViolation):
    """Raised when a bill (or its payments) is mutated while invoiced."""
    pass


class AlreadyInvoiced(BusinessRuleViolation):
    """Raised when an invoice is requested for a bill that already has one."""
    pass


class NotFoundError(BillingError):
    """Raised when an id does not resolve inside the caller's tenant.

    Foreign-tenant records raise this too, so callers cannot tell
    "does not exist" from "belongs to someone else".
    """
    code = "not_found"


class TenantResolutionError(BillingError):
    """Raised when no tenant can be determined for a write."""
    code = "no_tenant"


class ConcurrencyConflict(BillingError):
    """Raised when a racing request already created the same record."""
    code = "conflict"


class InfrastructureError(BillingError):
    """Raised when storage is unavailable."""
    code = "infrastructure"
