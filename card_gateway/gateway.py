"""
The Store 4 card gateway: availability, checkout scripts, and the payment
submission flow.

A submission is handled start to finish in one request. Field errors tagged
by the client-side form are reported as notices and block the charge; the
single charge call returns a typed result and the order's payment fields are
written only when it succeeded.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Optional, Union

import structlog
from sqlalchemy.orm import Session

from card_gateway.config import FORM_FIELDS, GATEWAY_ID, METHOD_TITLE, GatewaySettings
from card_gateway.models import Customer, Order, SavedCard, from_minor, to_minor
from card_gateway.stripe_service import (
    ChargeFailure,
    ChargeRequest,
    StripeProcessor,
)

logger = structlog.get_logger(__name__)

STRIPE_JS_URL = "https://js.stripe.com/v2/"
CHECKOUT_JS_PATH = "/static/s4wc.min.js"

# Form keys posted by the checkout script
CARD_FIELDS = (
    ("store4wc-card-number", "Credit Card Number"),
    ("store4wc-card-expiry", "Credit Card Expiration"),
    ("store4wc-card-cvc", "Credit Card CVC"),
)
TOKEN_FIELD = "store4wc-token"
SAVED_CARD_FIELD = "store4wc-card"
FORM_ERRORS_FIELD = "store4wc-form-errors"

SUPPORTS = ("default_credit_card_form", "products", "refunds")


class OrderNotFound(Exception):
    pass


@dataclass
class Notice:
    message: str
    level: str = "error"


@dataclass
class CheckoutSession:
    """Per-request slice of the shopper's session the flow may touch."""
    reload_checkout: bool = False
    notices: list = field(default_factory=list)

    def add_notice(self, message: str, level: str = "error"):
        self.notices.append(Notice(message, level))


@dataclass(frozen=True)
class PaymentSuccess:
    redirect: str
    result: str = "success"


@dataclass(frozen=True)
class PaymentFailure:
    message: str
    category: Optional[str] = None
    result: str = "failure"


PaymentOutcome = Union[PaymentSuccess, PaymentFailure]


def form_error_message(label: str, error_type: str) -> str:
    if error_type == "undefined":
        return f"The {label} field is required."
    if error_type == "invalid":
        return f"The {label} is invalid."
    return f"{label}: {error_type}"


def format_fee(fee: int) -> str:
    """Processor fee in minor units as a two-decimal major-unit string."""
    return f"{Decimal(fee) / 100:.2f}"


class CardGateway:
    id = GATEWAY_ID
    method_title = METHOD_TITLE
    supports = SUPPORTS

    def __init__(
        self,
        settings: GatewaySettings,
        processor: StripeProcessor,
        is_allowed: Callable[[Optional[int]], bool],
    ):
        self.settings = settings
        self.processor = processor
        self.is_allowed = is_allowed

    # Availability

    def is_available(self, actor_id: Optional[int]) -> bool:
        if not self.settings.enabled:
            return False
        # Stripe won't work without keys
        if not self.settings.publishable_key and not self.settings.secret_key:
            return False
        return self.is_allowed(actor_id)

    def describe(self) -> dict:
        return {
            "id": self.id,
            "method_title": self.method_title,
            "title": self.settings.title,
            "description": self.settings.description,
            "supports": list(self.supports),
        }

    def form_fields(self) -> dict:
        values = self.settings.option_values()
        return {name: {**spec, "value": values[name]} for name, spec in FORM_FIELDS.items()}

    # Checkout scripts

    def saved_cards(self, db: Session, actor_id: Optional[int]) -> list:
        if actor_id is None:
            return []
        customer = db.get(Customer, actor_id)
        return list(customer.cards) if customer else []

    def card_form_fields(self, has_card: bool) -> list:
        fields = []
        if self.settings.saved_cards and has_card:
            fields.append({"id": SAVED_CARD_FIELD, "label": "Saved Cards"})
        if self.settings.additional_fields:
            fields.append({"id": "billing-name", "label": "Name on Card"})
        fields.extend({"id": key, "label": label} for key, label in CARD_FIELDS)
        if self.settings.additional_fields:
            fields.append({"id": "billing-zip", "label": "Billing Zip"})
        return fields

    def script_config(
        self,
        db: Session,
        actor_id: Optional[int],
        order_id: Optional[int] = None,
        order_key: Optional[str] = None,
    ) -> dict:
        cards = self.saved_cards(db, actor_id)
        params = {
            "publishableKey": self.settings.publishable_key,
            "savedCardsEnabled": self.settings.saved_cards,
            "hasCard": bool(cards),
        }

        # The pay-for-order page needs the billing address for the card token
        if order_id is not None and order_key is not None:
            order = db.get(Order, order_id)
            if order is not None and order.order_key == order_key:
                params.update({
                    "billing_name": f"{order.billing_first_name} {order.billing_last_name}",
                    "billing_address_1": order.billing_address_1,
                    "billing_address_2": order.billing_address_2,
                    "billing_city": order.billing_city,
                    "billing_state": order.billing_state,
                    "billing_postcode": order.billing_postcode,
                    "billing_country": order.billing_country,
                })

        return {
            "scripts": [
                {"handle": "stripe", "src": STRIPE_JS_URL, "version": "2.0", "deps": []},
                {
                    "handle": "s4wc_js",
                    "src": self.settings.site_url + CHECKOUT_JS_PATH,
                    "version": "1.36",
                    "deps": ["stripe", "wc-credit-card-form"],
                },
            ],
            "params": params,
            "fields": self.card_form_fields(bool(cards)),
            "saved_cards": [
                {"id": card.id, "brand": card.brand, "last4": card.last4,
                 "exp_month": card.exp_month, "exp_year": card.exp_year}
                for card in cards
            ],
        }

    # Payment submission

    def validate_fields(self, form: dict, session: CheckoutSession) -> list:
        """Add a notice for every card field the client tagged with an error."""
        errors = []
        for key, label in CARD_FIELDS:
            error_type = form.get(key)
            if error_type:
                session.add_notice(form_error_message(label, error_type))
                errors.append(key)
        return errors

    def get_return_url(self, order: Order) -> str:
        return f"{self.settings.site_url}/checkout/order-received/{order.id}/?key={order.order_key}"

    def process_payment(
        self,
        db: Session,
        order_id: int,
        form: dict,
        session: CheckoutSession,
        actor_id: Optional[int] = None,
    ) -> PaymentOutcome:
        field_errors = self.validate_fields(form, session)

        order = db.get(Order, order_id)
        if order is None:
            raise OrderNotFound(order_id)

        log = logger.bind(order_id=order.id, actor_id=actor_id)

        if not order.needs_payment:
            message = "This order does not need payment."
            session.add_notice(message)
            log.info("payment_skipped_not_payable", status=order.status)
            return PaymentFailure(message)

        # Don't bother sending to Stripe when the form has errors
        if form.get(FORM_ERRORS_FIELD) == "1" or field_errors:
            message = "Please correct the card details and try again."
            session.reload_checkout = False
            session.add_notice(message)
            log.info("payment_blocked_by_form_errors", fields=field_errors)
            return PaymentFailure(message)

        source = self._resolve_source(db, order, form, actor_id)
        if isinstance(source, ChargeFailure):
            return self._payment_failed(db, order, session, source)

        card_source, customer_id = source
        result = self.processor.charge(ChargeRequest(
            amount=order.amount_minor,
            currency=(order.currency or "usd").lower(),
            source=card_source,
            customer=customer_id,
            capture=self.settings.capture,
            description=f"{self.settings.site_name} - Order {order.id}",
            metadata={"order_id": str(order.id)},
        ))

        if isinstance(result, ChargeFailure):
            return self._payment_failed(db, order, session, result)

        order.captured = self.settings.capture
        if result.fee is not None:
            order.processor_fee = format_fee(result.fee)
        order.transaction_id = result.transaction_id
        order.status = "processing" if self.settings.capture else "on-hold"
        order.add_note(f'Store4 payment completed with Transaction Id of "{result.transaction_id}"')
        db.commit()

        log.info(
            "payment_charge_succeeded",
            transaction_id=result.transaction_id,
            captured=order.captured,
            fee=order.processor_fee,
        )
        return PaymentSuccess(redirect=self.get_return_url(order))

    def _resolve_source(self, db: Session, order: Order, form: dict, actor_id: Optional[int]):
        """Card source and Stripe customer to charge, or the failure that prevented it.

        A selected saved card charges the actor's Stripe customer; a logged in
        actor with saved cards enabled has the new card stored first; guests
        charge the token directly.
        """
        selected = form.get(SAVED_CARD_FIELD)
        token = form.get(TOKEN_FIELD)

        if selected not in (None, "", "new"):
            card = None
            if actor_id is not None and str(selected).isdigit():
                card = db.get(SavedCard, int(selected))
            if card is None or card.user_id != actor_id:
                return ChargeFailure("invalid_card", "The selected card could not be found. (invalid_card)")
            return card.card_id, card.customer.processor_customer_id

        if not token:
            return ChargeFailure("missing_token", "Please enter your card details. (missing_token)")

        if not (self.settings.saved_cards and actor_id is not None):
            return token, None

        customer = db.get(Customer, actor_id)
        if customer is None:
            created = self.processor.create_customer(
                email=order.billing_email,
                description=f"Customer: {order.billing_first_name} {order.billing_last_name}".strip(),
            )
            if isinstance(created, ChargeFailure):
                return created
            customer = Customer(user_id=actor_id, processor_customer_id=created.customer_id)
            db.add(customer)
            db.flush()

        card = self.processor.add_card(customer.processor_customer_id, token)
        if isinstance(card, ChargeFailure):
            db.commit()
            return card

        customer.cards.append(SavedCard(
            card_id=card.card_id,
            brand=card.brand,
            last4=card.last4,
            exp_month=card.exp_month,
            exp_year=card.exp_year,
        ))
        db.commit()
        return card.card_id, customer.processor_customer_id

    def _payment_failed(self, db: Session, order: Order, session: CheckoutSession, failure: ChargeFailure) -> PaymentFailure:
        # Stop the page reload so the error is shown
        session.reload_checkout = False
        session.add_notice(f"Error: {failure.message}")

        order.add_note(f'Store4 payment failed with message: "{failure.message}"')
        db.commit()

        logger.warning("payment_charge_failed", order_id=order.id, category=failure.category)
        return PaymentFailure(failure.message, failure.category)

    # Refunds

    def process_refund(
        self,
        db: Session,
        order_id: int,
        amount: Optional[Decimal] = None,
        reason: str = "",
    ):
        order = db.get(Order, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if not order.transaction_id or order.status == "refunded":
            return None

        amount_minor = None if amount is None else to_minor(amount, order.currency)
        result = self.processor.refund(order.transaction_id, amount_minor, reason)
        if isinstance(result, ChargeFailure):
            logger.warning("payment_refund_failed", order_id=order.id, category=result.category)
            return result

        refunded = from_minor(result.amount, order.currency)
        order.amount_refunded = (order.amount_refunded or 0) + refunded
        if amount is None or order.amount_refunded >= order.total:
            order.status = "refunded"
        note = f"Refunded {refunded:.2f} - Refund ID: {result.refund_id}"
        if reason:
            note += f" - Reason: {reason}"
        order.add_note(note)
        db.commit()

        logger.info("payment_refunded", order_id=order.id, refund_id=result.refund_id, amount=result.amount)
        return result
