from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from errors import ConfigurationError

BASE_DIR = Path(__file__).resolve().parent

# VNPay protocol defaults
DEFAULT_VERSION = "2.1.0"
DEFAULT_COMMAND = "pay"
DEFAULT_CURRENCY = "VND"
DEFAULT_LOCALE = "vn"
DEFAULT_ORDER_TYPE = "other"
DEFAULT_IP = "127.0.0.1"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # -----------------------
    # VNPay (required)
    # -----------------------
    VNPAY_TMNCODE: str = ""
    VNPAY_HASH_SECRET_KEY: str = ""
    VNPAY_PAYMENT_URL: str = ""
    VNPAY_RETURN_URL: str = ""
    VNPAY_IPN_URL: str = ""

    # -----------------------
    # VNPay protocol constants
    # -----------------------
    VNPAY_VERSION: str = DEFAULT_VERSION
    VNPAY_COMMAND: str = DEFAULT_COMMAND
    VNPAY_CURRENCY: str = DEFAULT_CURRENCY
    VNPAY_LOCALE: str = DEFAULT_LOCALE
    VNPAY_ORDER_TYPE: str = DEFAULT_ORDER_TYPE
    VNPAY_DEFAULT_IP: str = DEFAULT_IP

    # -----------------------
    # App
    # -----------------------
    LOG_LEVEL: str = "INFO"
    PLANS_FILE: str = str(BASE_DIR / "plans.json")
    INVOICES_FILE: str = str(BASE_DIR / "invoices.json")


settings = Settings()


@dataclass(frozen=True)
class GatewayConfig:
    tmn_code: str
    hash_secret: str
    payment_url: str
    return_url: str
    ipn_url: str
    version: str = DEFAULT_VERSION
    command: str = DEFAULT_COMMAND
    currency: str = DEFAULT_CURRENCY
    locale: str = DEFAULT_LOCALE
    order_type: str = DEFAULT_ORDER_TYPE
    default_ip: str = DEFAULT_IP

    def require_complete(self) -> None:
        missing = [
            key
            for key, value in (
                ("VNPAY_TMNCODE", self.tmn_code),
                ("VNPAY_HASH_SECRET_KEY", self.hash_secret),
                ("VNPAY_PAYMENT_URL", self.payment_url),
                ("VNPAY_RETURN_URL", self.return_url),
                ("VNPAY_IPN_URL", self.ipn_url),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing environment variable(s): {', '.join(missing)}",
                details={"missing": missing},
            )


def load_gateway_config(source: Optional[Settings] = None) -> GatewayConfig:
    """
    Build the immutable gateway config from settings.
    Raises ConfigurationError naming every missing required key.
    """
    source = source or settings

    def value(name: str) -> str:
        return (getattr(source, name, "") or "").strip()

    config = GatewayConfig(
        tmn_code=value("VNPAY_TMNCODE"),
        hash_secret=value("VNPAY_HASH_SECRET_KEY"),
        payment_url=value("VNPAY_PAYMENT_URL"),
        return_url=value("VNPAY_RETURN_URL"),
        ipn_url=value("VNPAY_IPN_URL"),
        version=value("VNPAY_VERSION") or DEFAULT_VERSION,
        command=value("VNPAY_COMMAND") or DEFAULT_COMMAND,
        currency=value("VNPAY_CURRENCY") or DEFAULT_CURRENCY,
        locale=value("VNPAY_LOCALE") or DEFAULT_LOCALE,
        order_type=value("VNPAY_ORDER_TYPE") or DEFAULT_ORDER_TYPE,
        default_ip=value("VNPAY_DEFAULT_IP") or DEFAULT_IP,
    )
    config.require_complete()
    return config
