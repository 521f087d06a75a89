"""
Card payment processor client (Stripe REST API).

Only two calls are needed: create a payment intent for a provider's
commission payment, and retrieve it back to confirm the capture.
"""
from typing import Optional
import logging
import httpx
from collecte.core.config import settings
from collecte.core.exceptions import PaymentGatewayError
from collecte.services.reconciliation_service import PaymentConfirmation

logger = logging.getLogger(__name__)

PAYMENT_TYPE_COMMISSION = "commission"


def is_enabled() -> bool:
    """Card payments are available only when a secret key is configured."""
    return bool(settings.STRIPE_SECRET_KEY)


def _headers() -> dict:
    return {"Authorization": f"Bearer {settings.STRIPE_SECRET_KEY}"}


def _request(method: str, path: str, data: Optional[dict] = None) -> dict:
    url = f"{settings.STRIPE_API_URL.rstrip('/')}/{path.lstrip('/')}"
    try:
        with httpx.Client(timeout=settings.PAYMENT_TIMEOUT_SECONDS) as client:
            response = client.request(method, url, data=data, headers=_headers())
            response.raise_for_status()
            return response.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"Payment processor error {e.response.status_code}: {e.response.text}")
        raise PaymentGatewayError(f"Payment processor returned {e.response.status_code}") from e
    except httpx.HTTPError as e:
        logger.error(f"Payment processor request failed: {e}")
        raise PaymentGatewayError("Payment processor unreachable") from e


def create_payment_intent(amount: int, provider_id: int, currency: Optional[str] = None) -> dict:
    """
    Create a payment intent for a commission payment.

    Returns {"client_secret", "payment_intent_id", "amount"}.
    """
    payload = {
        "amount": str(amount),
        "currency": (currency or settings.PAYMENT_CURRENCY).lower(),
        "metadata[provider_id]": str(provider_id),
        "metadata[type]": PAYMENT_TYPE_COMMISSION,
        "automatic_payment_methods[enabled]": "true",
    }
    intent = _request("POST", "/payment_intents", data=payload)
    logger.info(f"Payment intent {intent.get('id')} created for provider {provider_id}: {amount}")
    return {
        "client_secret": intent.get("client_secret"),
        "payment_intent_id": intent.get("id"),
        "amount": amount,
    }


def retrieve_payment_intent(payment_intent_id: str) -> PaymentConfirmation:
    """Fetch a payment intent and describe its capture for reconciliation."""
    intent = _request("GET", f"/payment_intents/{payment_intent_id}")
    metadata = intent.get("metadata") or {}
    try:
        provider_id = int(metadata.get("provider_id"))
    except (TypeError, ValueError):
        raise PaymentGatewayError(f"Payment intent {payment_intent_id} has no provider metadata")

    return PaymentConfirmation(
        external_payment_id=intent.get("id", payment_intent_id),
        amount_captured=int(intent.get("amount_received") or 0),
        provider_id=provider_id,
        status=intent.get("status", ""),
    )
