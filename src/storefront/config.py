"""Service settings read from the environment.

Protean infrastructure (databases, brokers, event store) is configured in
``domain.toml``; the knobs below tune pricing and notifications.
"""

import os


def tax_rate() -> float:
    return float(os.getenv("STOREFRONT_TAX_RATE", "0.05"))


def currency() -> str:
    return os.getenv("STOREFRONT_CURRENCY", "INR")


def negotiation_ttl_days() -> int:
    return int(os.getenv("STOREFRONT_NEGOTIATION_TTL_DAYS", "7"))


def environment() -> str:
    return (os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def log_level() -> str:
    default = {"production": "INFO", "staging": "INFO", "test": "WARNING"}.get(environment(), "DEBUG")
    return os.getenv("STOREFRONT_LOG_LEVEL", default).upper()


def log_dir() -> str | None:
    """Directory for rotating log files; console only when unset."""
    return os.getenv("STOREFRONT_LOG_DIR") or None
