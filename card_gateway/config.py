"""Gateway options: admin field declarations and the typed settings view."""
import os
from pathlib import Path
from typing import Callable, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

GATEWAY_ID = "store4"
METHOD_TITLE = "Store 4"
ENV_PREFIX = "STORE4_"

FORM_FIELDS = {
    "enabled": {
        "type": "checkbox",
        "title": "Enable/Disable",
        "label": "Enable Store4",
        "default": "yes",
    },
    "title": {
        "type": "text",
        "title": "Title",
        "description": "This controls the title which the user sees during checkout.",
        "default": "Credit Card Payment",
    },
    "description": {
        "type": "textarea",
        "title": "Description",
        "description": "This controls the description which the user sees during checkout.",
        "default": "",
    },
    "charge_type": {
        "type": "select",
        "title": "Charge Type",
        "description": "Choose to capture payment at checkout, or authorize only to capture later.",
        "options": {
            "capture": "Authorize & Capture",
            "authorize": "Authorize Only",
        },
        "default": "capture",
    },
    "additional_fields": {
        "type": "checkbox",
        "title": "Additional Fields",
        "description": (
            "Add a Billing ZIP and a Name on Card for Stripe authentication purposes. "
            "This is only necessary if the shop only ships to the billing address."
        ),
        "label": "Use Additional Fields",
        "default": "no",
    },
    "saved_cards": {
        "type": "checkbox",
        "title": "Saved Cards",
        "description": "Allow customers to use saved cards for future purchases.",
        "default": "yes",
    },
    "testmode": {
        "type": "checkbox",
        "title": "Test Mode",
        "description": "Use the test mode on Stripe's dashboard to verify everything works before going live.",
        "label": "Turn on testing",
        "default": "no",
    },
    "test_secret_key": {"type": "text", "title": "Stripe API Test Secret key", "default": ""},
    "test_publishable_key": {"type": "text", "title": "Stripe API Test Publishable key", "default": ""},
    "live_secret_key": {"type": "text", "title": "Stripe API Live Secret key", "default": ""},
    "live_publishable_key": {"type": "text", "title": "Stripe API Live Publishable key", "default": ""},
}


class GatewaySettings(BaseModel):
    enabled: bool = True
    title: str = "Credit Card Payment"
    description: str = ""
    charge_type: Literal["capture", "authorize"] = "capture"
    additional_fields: bool = False
    saved_cards: bool = True
    testmode: bool = False
    test_secret_key: str = ""
    test_publishable_key: str = ""
    live_secret_key: str = ""
    live_publishable_key: str = ""

    allowed_user_ids: list[int] = Field(default_factory=lambda: [1])
    site_name: str = "Store"
    site_url: str = "http://localhost:8000"

    @property
    def secret_key(self) -> str:
        return self.test_secret_key if self.testmode else self.live_secret_key

    @property
    def publishable_key(self) -> str:
        return self.test_publishable_key if self.testmode else self.live_publishable_key

    @property
    def capture(self) -> bool:
        return self.charge_type == "capture"

    @classmethod
    def from_options(cls, raw: dict, **extra) -> "GatewaySettings":
        """Build settings from the host's raw option mapping.

        Missing options take their FORM_FIELDS default; checkbox values are
        the host's "yes"/"no" strings.
        """
        values = {}
        for name, field in FORM_FIELDS.items():
            value = raw.get(name, field["default"])
            if field["type"] == "checkbox" and isinstance(value, str):
                value = value == "yes"
            values[name] = value
        values.update(extra)
        return cls(**values)

    def option_values(self) -> dict:
        """Current values in the host's raw option format."""
        values = {}
        for name, field in FORM_FIELDS.items():
            value = getattr(self, name)
            if field["type"] == "checkbox":
                value = "yes" if value else "no"
            values[name] = value
        return values


def load_settings() -> GatewaySettings:
    raw = {}
    for name in FORM_FIELDS:
        value = os.getenv(ENV_PREFIX + name.upper())
        if value is not None:
            raw[name] = value

    allowed = os.getenv(ENV_PREFIX + "ALLOWED_USER_IDS", "1")
    return GatewaySettings.from_options(
        raw,
        allowed_user_ids=[int(uid) for uid in allowed.split(",") if uid.strip()],
        site_name=os.getenv("SITE_NAME", "Store"),
        site_url=os.getenv("SITE_URL", "http://localhost:8000").rstrip("/"),
    )


def allow_list(user_ids) -> Callable[[Optional[int]], bool]:
    """Predicate offering the gateway only to the given host users."""
    allowed = frozenset(user_ids)

    def is_allowed(actor_id: Optional[int]) -> bool:
        return actor_id is not None and actor_id in allowed

    return is_allowed
