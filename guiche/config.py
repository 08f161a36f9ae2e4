import os
from pathlib import Path
from dotenv import load_dotenv

from guiche.errors import ConfigurationError

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

DEFAULT_FREEPAY_API_URL = "https://api.freepaybrasil.com/v1/payment-transaction/create"
DEFAULT_UTMIFY_API_URL = "https://api.utmify.com.br/api-credentials/orders"
QR_CODE_RENDER_URL = "https://api.qrserver.com/v1/create-qr-code/"
WEBHOOK_PATH = "/pix-webhook"


def require(name: str) -> str:
    """Return a mandatory setting or raise before anything touches the network."""
    value = os.getenv(name)
    if not value:
        raise ConfigurationError(f"{name} is not set. Check your .env file.")
    return value


def freepay_credentials() -> tuple[str, str]:
    return require("FREEPAY_PUBLIC_KEY"), require("FREEPAY_SECRET_KEY")


def freepay_api_url() -> str:
    return os.getenv("FREEPAY_API_URL", DEFAULT_FREEPAY_API_URL)


def utmify_api_url() -> str:
    return os.getenv("UTMIFY_API_URL", DEFAULT_UTMIFY_API_URL)


def postback_url() -> str | None:
    base_url = os.getenv("PUBLIC_BASE_URL")
    if not base_url:
        return None
    return base_url.rstrip("/") + WEBHOOK_PATH


def pix_expiry_days() -> int:
    return int(os.getenv("PIX_EXPIRY_DAYS", "1"))


def http_timeout() -> float:
    return float(os.getenv("HTTP_TIMEOUT", "10"))


def admin_token_ttl_minutes() -> int:
    return int(os.getenv("ADMIN_TOKEN_TTL_MINUTES", "480"))
