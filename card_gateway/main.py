import os
from pathlib import Path
from dotenv import load_dotenv
from fastapi import FastAPI

from card_gateway.config import allow_list, load_settings
from card_gateway.database import init_db
from card_gateway.gateway import CardGateway
from card_gateway.logging_config import configure_logging, get_logger
from card_gateway.routes import router
from card_gateway.stripe_service import StripeProcessor

# Force-load .env (Windows-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

configure_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    format_as_json=os.getenv("LOG_FORMAT", "json") == "json",
)
logger = get_logger(__name__)


def build_gateway(settings=None) -> CardGateway:
    settings = settings or load_settings()
    return CardGateway(
        settings,
        StripeProcessor(settings.secret_key),
        is_allowed=allow_list(settings.allowed_user_ids),
    )


app = FastAPI(title="Store 4 Card Gateway")

app.include_router(router)
app.state.gateway = build_gateway()

init_db()

logger.info(
    "card_gateway_started",
    enabled=app.state.gateway.settings.enabled,
    testmode=app.state.gateway.settings.testmode,
    charge_type=app.state.gateway.settings.charge_type,
)
