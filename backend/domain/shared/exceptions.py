"""
Domain Exceptions.

Errors raised by models, domain rules and application services when a
contract, AVR, payment or task operation is not allowed. Each class carries
the HTTP status the API answers with; the mapping itself lives in
presentation.api.exception_handler.
"""

from typing import Any, Dict, Iterable, Optional


class DomainException(Exception):
    """Base exception for all domain errors."""

    default_code = "DOMAIN_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def __str__(self):
        return self.message


class EntityNotFoundException(DomainException):
    """A referenced project, contract or user does not exist."""

    default_code = "ENTITY_NOT_FOUND"
    status_code = 404

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"{entity_type} с идентификатором '{entity_id}' не найден",
            details={"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class InvalidOperationException(DomainException):
    default_code = "INVALID_OPERATION"

    def __init__(self, message: str, current_state: Optional[str] = None):
        super().__init__(
            message,
            details={"current_state": current_state} if current_state else None,
        )


class ValidationException(DomainException):
    """Input that passed the serializer but breaks a domain rule."""

    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(
            message,
            details={"field": field, "value": None if value is None else str(value)},
        )


class StatusTransitionException(DomainException):
    """
    Workflow step not allowed from the current status.

    Raised for AVR approval steps and for closed procurement positions.
    """

    default_code = "INVALID_STATUS_TRANSITION"
    status_code = 409

    def __init__(
        self,
        entity_type: str,
        current_status: Any,
        target_status: Any,
        allowed_transitions: Optional[Iterable] = None
    ):
        allowed = [str(s) for s in allowed_transitions or ()]
        super().__init__(
            f"Недопустимый переход {entity_type}: '{current_status}' → '{target_status}'",
            details={
                "entity_type": entity_type,
                "current_status": str(current_status),
                "target_status": str(target_status),
                "allowed_transitions": allowed,
            },
        )


class AuthorizationException(DomainException):
    default_code = "AUTHORIZATION_ERROR"
    status_code = 403

    def __init__(self, operation: str, resource: Optional[str] = None):
        message = f"Недостаточно прав для операции '{operation}'"
        if resource:
            message += f" над '{resource}'"
        super().__init__(message, details={"operation": operation, "resource": resource})


class PaymentLimitExceededException(DomainException):
    """Payment amount is above what is left of the contract value."""

    default_code = "PAYMENT_LIMIT_EXCEEDED"

    def __init__(self, contract_number: str, requested: str, available: str):
        super().__init__(
            f"Сумма платежа {requested} превышает доступный остаток "
            f"{available} по контракту {contract_number}",
            details={
                "contract_number": contract_number,
                "requested": requested,
                "available": available,
            },
        )
