# config.py

from __future__ import annotations
import os
from typing import List

from errors import ConfigError

# --------- PROYECTO / GCP ---------

PROJECT_ID = os.getenv("PROJECT_ID", "data-323821")

# --------- INTERCOM (origen) ---------

INTERCOM_BASE_URL = os.getenv("INTERCOM_BASE_URL", "https://api.intercom.io")

# Token por env o, si no viene, desde Secret Manager
INTERCOM_ACCESS_TOKEN_ENV = os.getenv("INTERCOM_ACCESS_TOKEN")
INTERCOM_SECRET_NAME      = os.getenv("INTERCOM_SECRET_NAME", "intercom_access_token")

# --------- CAPLENA (destino) ---------

CAPLENA_BASE_URL = os.getenv("CAPLENA_BASE_URL", "https://api.caplena.com")

CAPLENA_API_KEY_ENV = os.getenv("CAPLENA_API_KEY")
CAPLENA_SECRET_NAME = os.getenv("CAPLENA_SECRET_NAME", "caplena_api_key")

CAPLENA_PROJECT_NAME = os.getenv("CAPLENA_PROJECT_NAME", "MRT - Intercom chats")
CAPLENA_PROJECT_LANGUAGE = os.getenv("CAPLENA_PROJECT_LANGUAGE", "en")

# --------- CSV ---------

CSV_OUTPUT_PATH = os.getenv("CSV_OUTPUT_PATH", "./exports/intercom_transcripts.csv")

# --------- PAGINACIÓN / LOTES / RITMO ---------

# Límites impuestos por las APIs externas
PAGE_SIZE       = int(os.getenv("PAGE_SIZE", "50"))
ROWS_PAGE_SIZE  = int(os.getenv("ROWS_PAGE_SIZE", "50"))
BATCH_SIZE      = int(os.getenv("BATCH_SIZE", "20"))

# Pausa fija entre requests secuenciales (Caplena: 10 req/s)
REQUEST_DELAY_SECONDS = float(os.getenv("REQUEST_DELAY_SECONDS", "0.1"))

LOOKBACK_HOURS = int(os.getenv("LOOKBACK_HOURS", "24"))

# --------- HTTP SESSION / TIMEOUTS ---------

HTTP_POOL_CONNECTIONS = int(os.getenv("HTTP_POOL_CONNECTIONS", "50"))
HTTP_POOL_MAXSIZE     = int(os.getenv("HTTP_POOL_MAXSIZE", "50"))
HTTP_MAX_RETRIES      = int(os.getenv("HTTP_MAX_RETRIES", "0"))

HTTP_TIMEOUT = int(os.getenv("HTTP_TIMEOUT", "30"))

# --------- LOGGING ---------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def missing_credentials() -> List[str]:
    """
    Credenciales sin valor en env. Si USE_SECRET_MANAGER=true se asume que
    vendrán de Secret Manager y no se reportan.
    """
    if os.getenv("USE_SECRET_MANAGER", "false").lower() == "true":
        return []

    required = {
        "INTERCOM_ACCESS_TOKEN": INTERCOM_ACCESS_TOKEN_ENV,
        "CAPLENA_API_KEY": CAPLENA_API_KEY_ENV,
    }
    return [name for name, value in required.items() if not (value and value.strip())]


def require_credentials() -> None:
    missing = missing_credentials()
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")
