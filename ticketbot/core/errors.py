"""Error Hierarchy — typed, categorized exceptions for every ticketbot failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Buyer-input problems are never exceptions; they are re-prompts produced by core/conversation.py
    - Infrastructure errors (gateway, channel, database) carry 5xx http_status
    - No internal details leaked in user-facing messages
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    AUTHENTICATION = "authentication"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sender: str | None = None
    order_id: str | None = None
    reference: str | None = None
    stage: str | None = None
    debug_info: dict[str, Any] | None = None


class TicketBotError(Exception):
    """Base exception for all ticketbot errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "order_id": self.context.order_id,
                    "reference": self.context.reference,
                    "stage": self.context.stage,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ResourceNotFoundError(TicketBotError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class WebhookSignatureError(TicketBotError):
    """Webhook body did not match the provider signature."""
    def __init__(self, provider: str, context: ErrorContext | None = None):
        super().__init__(
            f"Invalid {provider} webhook signature",
            "INVALID_SIGNATURE", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )
        self.provider = provider


class InvalidWebhookPayloadError(TicketBotError):
    """Webhook body is not parseable as the provider's payload."""
    def __init__(self, provider: str, detail: str, context: ErrorContext | None = None):
        super().__init__(
            f"Malformed {provider} webhook payload: {detail}",
            "INVALID_WEBHOOK_PAYLOAD", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.provider = provider


class InsufficientInventoryError(TicketBotError):
    """Ticket type cannot cover the requested quantity."""
    def __init__(
        self, ticket_type_id: str, requested: int, available: int,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Ticket type '{ticket_type_id}' has {available} left, {requested} requested",
            "INSUFFICIENT_INVENTORY", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )
        self.ticket_type_id = ticket_type_id
        self.requested = requested
        self.available = available


class SessionExpiredError(TicketBotError):
    """Persisted session row lacks fields its stage requires."""
    def __init__(self, stage: str, missing: list[str], context: ErrorContext | None = None):
        super().__init__(
            f"Session in stage '{stage}' is missing: {', '.join(missing)}",
            "SESSION_EXPIRED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 400,
        )
        self.stage = stage
        self.missing = missing


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(TicketBotError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class PaymentGatewayError(TicketBotError):
    """Payment gateway call failed or returned an unusable response."""
    def __init__(
        self, message: str, gateway_error_type: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Payment gateway error ({gateway_error_type}): {message}",
            "PAYMENT_GATEWAY_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, context, 502,
        )
        self.gateway_error_type = gateway_error_type


class MessagingChannelError(TicketBotError):
    """Outbound messaging API call failed."""
    def __init__(
        self, message: str, channel_error_type: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Messaging channel error ({channel_error_type}): {message}",
            "MESSAGING_CHANNEL_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, context, 502,
        )
        self.channel_error_type = channel_error_type
