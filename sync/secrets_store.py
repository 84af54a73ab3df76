# secrets_store.py
from __future__ import annotations

import logging
from typing import Optional

from google.cloud import secretmanager

import config
from errors import ConfigError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def get_secret_text(secret_name: str) -> str:

    client = secretmanager.SecretManagerServiceClient()
    name = f"projects/{config.PROJECT_ID}/secrets/{secret_name}/versions/latest"
    resp = client.access_secret_version(request={"name": name})
    return resp.payload.data.decode("utf-8")


def resolve_credential(env_value: Optional[str], secret_name: str) -> str:
    """
    Env primero; si no hay valor, se lee el secreto. Secreto vacío = ConfigError.
    """
    if env_value and env_value.strip():
        return env_value.strip()

    logger.info("[SECRETS] Credencial no definida en env, leyendo secreto %s", secret_name)
    value = get_secret_text(secret_name).strip()
    if not value:
        raise ConfigError(f"Secret {secret_name} is empty")
    return value


def get_intercom_token() -> str:
    return resolve_credential(config.INTERCOM_ACCESS_TOKEN_ENV, config.INTERCOM_SECRET_NAME)


def get_caplena_api_key() -> str:
    return resolve_credential(config.CAPLENA_API_KEY_ENV, config.CAPLENA_SECRET_NAME)
