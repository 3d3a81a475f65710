"""Application settings read from the environment.

Protean's own configuration (databases, brokers, processing mode) lives in
``domain.toml`` next to the domain module. The settings here cover the
collaborators Protean does not know about: payment gateways, redirect URLs
and business policy knobs.
"""

import os
from dataclasses import dataclass

_settings: "Settings | None" = None


@dataclass(frozen=True)
class Settings:
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    ssl_store_id: str = ""
    ssl_store_password: str = ""
    ssl_payment_api: str = "https://sandbox.sslcommerz.com/gwprocess/v4/api.php"
    ssl_validation_api: str = "https://sandbox.sslcommerz.com/validator/api/validationserverAPI.php"
    ssl_success_url: str = ""
    ssl_fail_url: str = ""
    ssl_cancel_url: str = ""
    frontend_success_url: str = "http://localhost:3000/payment/success"
    frontend_cancel_url: str = "http://localhost:3000/payment/cancel"
    backend_url: str = "http://localhost:8000"
    gateway_adapter: str = "fake"
    gateway_timeout_seconds: float = 10.0
    currency: str = "USD"
    return_window_days: int = 30

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.environ
        return cls(
            stripe_secret_key=env.get("STRIPE_SECRET_KEY", ""),
            stripe_webhook_secret=env.get("STRIPE_WEBHOOK_SECRET", ""),
            ssl_store_id=env.get("SSL_STORE_ID", ""),
            ssl_store_password=env.get("SSL_STORE_PASSWORD", ""),
            ssl_payment_api=env.get("SSL_PAYMENT_API", cls.ssl_payment_api),
            ssl_validation_api=env.get("SSL_VALIDATION_API", cls.ssl_validation_api),
            ssl_success_url=env.get("SSL_SUCCESS_URL", ""),
            ssl_fail_url=env.get("SSL_FAIL_URL", ""),
            ssl_cancel_url=env.get("SSL_CANCEL_URL", ""),
            frontend_success_url=env.get("FRONTEND_SUCCESS_URL", cls.frontend_success_url),
            frontend_cancel_url=env.get("FRONTEND_CANCEL_URL", cls.frontend_cancel_url),
            backend_url=env.get("BACKEND_URL", cls.backend_url).rstrip("/"),
            gateway_adapter=env.get("PAYMENT_GATEWAY_ADAPTER", cls.gateway_adapter).lower(),
            gateway_timeout_seconds=float(env.get("GATEWAY_TIMEOUT_SECONDS", cls.gateway_timeout_seconds)),
            currency=env.get("CURRENCY", cls.currency).upper(),
            return_window_days=int(env.get("RETURN_WINDOW_DAYS", cls.return_window_days)),
        )


def get_settings() -> Settings:
    """Return the process-wide settings, loading them from the environment once."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next ``get_settings()`` re-reads the environment."""
    global _settings
    _settings = None
