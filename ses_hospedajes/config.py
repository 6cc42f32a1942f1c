"""Runtime configuration for the SES.Hospedajes web service."""

from dataclasses import dataclass
import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv


load_dotenv()

DEFAULT_APPLICATION = "SES-HOSPEDAJES-APP"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}")


@dataclass
class Settings:
    """Holds the web service credentials and transport options."""

    environment: str = "PRE"
    ws_user: str = ""
    ws_password: str = ""
    establishment_code: str = ""
    entity_code: str = ""
    pre_endpoint: str = ""
    pro_endpoint: str = ""
    verify_tls: bool = True
    ca_bundle: Optional[str] = None
    timeout: float = 30.0
    reconcile_delay: float = 5.0
    application: str = DEFAULT_APPLICATION
    log_level: str = "INFO"

    @property
    def endpoint(self) -> str:
        return self.pro_endpoint if self.environment == "PRO" else self.pre_endpoint

    @property
    def lessor_code(self) -> str:
        """Code sent as ``codigoArrendador`` in the envelope header."""
        return self.entity_code or self.establishment_code

    def missing(self) -> List[str]:
        """Names of the required settings that are not set."""
        missing = []
        if not self.ws_user:
            missing.append("SES_WS_USER")
        if not self.ws_password:
            missing.append("SES_WS_PASSWORD")
        if not self.endpoint:
            missing.append(f"SES_{self.environment}_ENDPOINT")
        return missing


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache settings so every module shares the same values."""

    environment = (os.getenv("SES_ENVIRONMENT") or "PRE").strip().upper()
    if environment not in {"PRE", "PRO"}:
        raise ValueError(f"SES_ENVIRONMENT must be PRE or PRO, got {environment!r}")

    return Settings(
        environment=environment,
        ws_user=os.getenv("SES_WS_USER", ""),
        ws_password=os.getenv("SES_WS_PASSWORD", ""),
        establishment_code=os.getenv("SES_ESTABLISHMENT_CODE", ""),
        entity_code=os.getenv("SES_ENTITY_CODE", ""),
        pre_endpoint=os.getenv("SES_PRE_ENDPOINT", ""),
        pro_endpoint=os.getenv("SES_PRO_ENDPOINT", ""),
        verify_tls=_env_bool("SES_VERIFY_TLS", True),
        ca_bundle=os.getenv("SES_CA_BUNDLE") or None,
        timeout=_env_float("SES_TIMEOUT", 30.0),
        reconcile_delay=_env_float("SES_RECONCILE_DELAY", 5.0),
        application=os.getenv("SES_APPLICATION") or DEFAULT_APPLICATION,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
