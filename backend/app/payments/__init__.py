"""Payment gateway orchestration."""

from .client import DEFAULT_PAYSTACK_BASE_URL, GatewayClient, PaystackAPIError, PaystackClient
from .models import (
    GatewayResult,
    PaymentCustomer,
    PaymentTransactionRequest,
    TransactionInitialization,
    WebhookEvent,
    WebhookEventType,
)
from .service import (
    NOT_CONFIGURED_ERROR,
    PaymentOrchestrator,
    customer_from_result,
    generate_reference,
    to_major_units,
    to_minor_units,
)
from .webhooks import SIGNATURE_HEADER, WebhookSignatureError, WebhookVerifier

__all__ = [
    "DEFAULT_PAYSTACK_BASE_URL",
    "NOT_CONFIGURED_ERROR",
    "SIGNATURE_HEADER",
    "GatewayClient",
    "GatewayResult",
    "PaymentCustomer",
    "PaymentOrchestrator",
    "PaymentTransactionRequest",
    "PaystackAPIError",
    "PaystackClient",
    "TransactionInitialization",
    "WebhookEvent",
    "WebhookEventType",
    "WebhookSignatureError",
    "WebhookVerifier",
    "customer_from_result",
    "generate_reference",
    "to_major_units",
    "to_minor_units",
]
