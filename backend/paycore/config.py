from __future__ import annotations

import os
from dataclasses import dataclass


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _env_int(name: str, default: int, *, minimum: int = 1, maximum: int = 86400) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        value = int(default)
    else:
        try:
            value = int(raw)
        except Exception:
            value = int(default)
    if value < minimum:
        value = minimum
    if value > maximum:
        value = maximum
    return value


def _env_list(name: str) -> tuple[str, ...]:
    raw = (os.getenv(name) or "").strip()
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class PaymentsSettings:
    mode: str = "sandbox"
    timezone: str = "UTC"
    attempt_timeout_seconds: int = 900
    disabled_gateways: tuple[str, ...] = ()

    hosted_base_url: str = ""
    hosted_merchant_id: str = ""
    hosted_terminal_id: str = ""
    hosted_api_key: str = ""
    hosted_secret_key: str = ""
    hosted_timeout_seconds: int = 25

    lightbox_merchant_id: str = ""
    lightbox_terminal_id: str = ""
    lightbox_secret_key_hex: str = ""
    lightbox_script_url: str = ""

    report_policy: str = "sync"
    report_url: str = ""
    report_token: str = ""


def load_settings() -> PaymentsSettings:
    mode = _env_str("PAYMENTS_MODE", "sandbox").lower()
    if mode not in ("live", "sandbox", "disabled"):
        mode = "disabled"
    policy = _env_str("PAYMENTS_REPORT_POLICY", "sync").lower()
    if policy not in ("sync", "queued", "disabled"):
        policy = "sync"
    return PaymentsSettings(
        mode=mode,
        timezone=_env_str("PAYMENTS_TIMEZONE", "UTC"),
        attempt_timeout_seconds=_env_int("PAYMENTS_ATTEMPT_TIMEOUT_SECONDS", 900, minimum=5),
        disabled_gateways=_env_list("PAYMENTS_DISABLED_GATEWAYS"),
        hosted_base_url=_env_str("HOSTED_BASE_URL").rstrip("/"),
        hosted_merchant_id=_env_str("HOSTED_MERCHANT_ID"),
        hosted_terminal_id=_env_str("HOSTED_TERMINAL_ID"),
        hosted_api_key=_env_str("HOSTED_API_KEY"),
        hosted_secret_key=_env_str("HOSTED_SECRET_KEY"),
        hosted_timeout_seconds=_env_int("HOSTED_TIMEOUT_SECONDS", 25, minimum=1, maximum=120),
        lightbox_merchant_id=_env_str("LIGHTBOX_MERCHANT_ID"),
        lightbox_terminal_id=_env_str("LIGHTBOX_TERMINAL_ID"),
        lightbox_secret_key_hex=_env_str("LIGHTBOX_SECRET_KEY_HEX"),
        lightbox_script_url=_env_str("LIGHTBOX_SCRIPT_URL"),
        report_policy=policy,
        report_url=_env_str("PAYMENTS_REPORT_URL"),
        report_token=_env_str("PAYMENTS_REPORT_TOKEN"),
    )
