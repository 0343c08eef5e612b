from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from card_gateway.database import Base

# Statuses the host still takes payment for
PAYABLE_STATUSES = ("pending", "failed")

# Stripe charges these in their major unit
ZERO_DECIMAL_CURRENCIES = frozenset({
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
})


def to_minor(amount, currency: str) -> int:
    """Amount in major units as the integer Stripe expects for the currency."""
    if (currency or "").lower() not in ZERO_DECIMAL_CURRENCIES:
        amount = Decimal(amount) * 100
    return int(Decimal(amount).quantize(Decimal("1")))


def from_minor(amount: int, currency: str) -> Decimal:
    if (currency or "").lower() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount)
    return Decimal(amount) / 100


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_key = Column(String, nullable=False)     # secret used in pay-page links
    billing_first_name = Column(String, default="")
    billing_last_name = Column(String, default="")
    billing_address_1 = Column(String, default="")
    billing_address_2 = Column(String, default="")
    billing_city = Column(String, default="")
    billing_state = Column(String, default="")
    billing_postcode = Column(String, default="")
    billing_country = Column(String, default="")
    billing_email = Column(String, default="")
    total = Column(Numeric(10, 2), nullable=False)  # major currency units
    currency = Column(String, default="usd")
    status = Column(String, default="pending")     # pending | failed | processing | on-hold | completed | refunded

    # Payment state, written only after a successful charge
    transaction_id = Column(String, nullable=True)
    captured = Column(Boolean, nullable=True)
    processor_fee = Column(String, nullable=True)
    amount_refunded = Column(Numeric(10, 2), default=0, nullable=False)

    notes = relationship("OrderNote", back_populates="order", order_by="OrderNote.id")

    @property
    def needs_payment(self):
        return self.status in PAYABLE_STATUSES

    @property
    def amount_minor(self) -> int:
        return to_minor(self.total, self.currency)

    def add_note(self, note: str):
        self.notes.append(OrderNote(note=note))


class OrderNote(Base):
    __tablename__ = "order_notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True)
    note = Column(Text, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    order = relationship("Order", back_populates="notes")


class Customer(Base):
    __tablename__ = "customers"

    user_id = Column(Integer, primary_key=True)                 # host user id
    processor_customer_id = Column(String, unique=True)         # Stripe customer id

    cards = relationship("SavedCard", back_populates="customer", order_by="SavedCard.id")


class SavedCard(Base):
    __tablename__ = "saved_cards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("customers.user_id"), index=True)
    card_id = Column(String, nullable=False)                    # Stripe card id
    brand = Column(String)
    last4 = Column(String)
    exp_month = Column(Integer)
    exp_year = Column(Integer)

    customer = relationship("Customer", back_populates="cards")
