"""
Stripe Charges API client for the card gateway.

Every call returns a typed result instead of raising: processor errors are
caught here, once, and translated into ``ChargeFailure`` with a category and
a customer-facing message. The secret key is passed per request, so several
gateways with different keys can share the process.
"""
from dataclasses import dataclass, field
from typing import Optional, Union

import stripe
import structlog

logger = structlog.get_logger(__name__)

# Customer-facing text for the error codes Stripe documents for card errors
ERROR_MESSAGES = {
    "incorrect_number": "Your card number is incorrect.",
    "invalid_number": "Your card number is not a valid credit card number.",
    "invalid_expiry_month": "Your card's expiration month is invalid.",
    "invalid_expiry_year": "Your card's expiration year is invalid.",
    "invalid_cvc": "Your card's security code is invalid.",
    "incorrect_cvc": "Your card's security code is incorrect.",
    "expired_card": "Your card has expired.",
    "incorrect_zip": "Your zip code failed validation.",
    "card_declined": "Your card was declined.",
    "processing_error": "An error occurred while processing your card.",
}

ERROR_CATEGORIES = (
    (stripe.CardError, "card_error"),
    (stripe.InvalidRequestError, "invalid_request_error"),
    (stripe.AuthenticationError, "authentication_error"),
    (stripe.RateLimitError, "rate_limit_error"),
    (stripe.APIConnectionError, "api_connection_error"),
)


@dataclass(frozen=True)
class ChargeRequest:
    amount: int                    # minor currency units
    currency: str
    source: str                    # card token, or card id when customer is set
    capture: bool
    description: str
    metadata: dict = field(default_factory=dict)
    customer: Optional[str] = None


@dataclass(frozen=True)
class ChargeSuccess:
    transaction_id: str
    fee: Optional[int] = None      # minor units, when the balance transaction is known


@dataclass(frozen=True)
class ChargeFailure:
    category: str
    message: str


@dataclass(frozen=True)
class CustomerResult:
    customer_id: str


@dataclass(frozen=True)
class CardResult:
    card_id: str
    brand: str = ""
    last4: str = ""
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None


@dataclass(frozen=True)
class RefundSuccess:
    refund_id: str
    amount: int


ChargeResult = Union[ChargeSuccess, ChargeFailure]


def error_category(exc: stripe.StripeError) -> str:
    if exc.code:
        return exc.code
    for error_class, category in ERROR_CATEGORIES:
        if isinstance(exc, error_class):
            return category
    return "api_error"


def translate_error(exc: stripe.StripeError) -> ChargeFailure:
    category = error_category(exc)
    text = ERROR_MESSAGES.get(exc.code or "") or exc.user_message or str(exc) or "Unable to process payment."
    return ChargeFailure(category=category, message=f"{text} ({category})")


class StripeProcessor:
    def __init__(self, secret_key: str):
        self.secret_key = secret_key

    def charge(self, request: ChargeRequest) -> ChargeResult:
        params = {
            "amount": request.amount,
            "currency": request.currency,
            "source": request.source,
            "capture": request.capture,
            "description": request.description,
            "metadata": request.metadata,
            "expand": ["balance_transaction"],
        }
        if request.customer:
            params["customer"] = request.customer

        try:
            charge = stripe.Charge.create(api_key=self.secret_key, **params)
        except stripe.StripeError as exc:
            failure = translate_error(exc)
            logger.warning(
                "stripe_charge_failed",
                category=failure.category,
                amount=request.amount,
                currency=request.currency,
            )
            return failure

        fee = None
        balance_transaction = getattr(charge, "balance_transaction", None)
        # Unexpanded balance transactions come back as a bare id
        if balance_transaction is not None and not isinstance(balance_transaction, str):
            fee = getattr(balance_transaction, "fee", None)

        logger.info("stripe_charge_created", charge_id=charge.id, captured=request.capture)
        return ChargeSuccess(transaction_id=charge.id, fee=fee)

    def create_customer(self, email: str, description: str) -> Union[CustomerResult, ChargeFailure]:
        try:
            customer = stripe.Customer.create(
                email=email,
                description=description,
                api_key=self.secret_key,
            )
        except stripe.StripeError as exc:
            logger.warning("stripe_customer_create_failed", code=exc.code)
            return translate_error(exc)
        return CustomerResult(customer_id=customer.id)

    def add_card(self, customer_id: str, token: str) -> Union[CardResult, ChargeFailure]:
        try:
            card = stripe.Customer.create_source(customer_id, source=token, api_key=self.secret_key)
        except stripe.StripeError as exc:
            logger.warning("stripe_card_add_failed", customer_id=customer_id, code=exc.code)
            return translate_error(exc)
        return CardResult(
            card_id=card.id,
            brand=getattr(card, "brand", None) or "",
            last4=getattr(card, "last4", None) or "",
            exp_month=getattr(card, "exp_month", None),
            exp_year=getattr(card, "exp_year", None),
        )

    def refund(self, transaction_id: str, amount: Optional[int] = None, reason: str = "") -> Union[RefundSuccess, ChargeFailure]:
        params = {"charge": transaction_id}
        if amount is not None:
            params["amount"] = amount
        if reason:
            params["metadata"] = {"reason": reason}

        try:
            refund = stripe.Refund.create(api_key=self.secret_key, **params)
        except stripe.StripeError as exc:
            logger.warning("stripe_refund_failed", charge_id=transaction_id, code=exc.code)
            return translate_error(exc)
        return RefundSuccess(refund_id=refund.id, amount=refund.amount)
