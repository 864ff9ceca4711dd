import os
from dataclasses import dataclass, field


def _positive_int(name: str, default: int) -> int:
    try:
        value = int(os.getenv(name, str(default)))
        if value <= 0:
            raise ValueError
    except ValueError:
        value = default
    return value


@dataclass(frozen=True)
class Settings:
    LOG_LEVEL: str = field(default="INFO")
    OPENSSL_BIN: str = field(default="openssl")
    TIMEOUT_SEC: int = field(default=60)
    EXPIRY_DAYS: int = field(default=30)
    LEGACY_RETRY: bool = field(default=True)

    @staticmethod
    def from_env() -> "Settings":
        log_level = os.getenv("CERTCONV_LOG_LEVEL", "INFO").upper()
        openssl_bin = os.getenv("CERTCONV_OPENSSL", "").strip() or "openssl"
        legacy = os.getenv("CERTCONV_LEGACY_RETRY", "true").lower() in ("1", "true", "yes")
        return Settings(
            LOG_LEVEL=log_level,
            OPENSSL_BIN=openssl_bin,
            TIMEOUT_SEC=_positive_int("CERTCONV_TIMEOUT_SEC", 60),
            EXPIRY_DAYS=_positive_int("CERTCONV_EXPIRY_DAYS", 30),
            LEGACY_RETRY=legacy,
        )
