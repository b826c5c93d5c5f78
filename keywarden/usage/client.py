"""
================================================================================
Usage Client
================================================================================

Uma única requisição GET por key ao endpoint de consumo, com timeout fixo.

Falhas por key não são exceções: viram dados no resultado
(`valid: False` + `error`), para que uma key ruim nunca derrube a
agregação das demais.

## Mensagens de erro:

- `HTTP <code>`: resposta diferente de 200
- `Invalid API response`: corpo sem `usage.standard`
- `Parse error`: corpo não é JSON
- `Request timeout`: timeout estourado
- Mensagem da exceção: demais falhas de rede
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

import requests

from ..config import DEFAULT_USAGE_URL


logger = logging.getLogger(__name__)

USER_AGENT = "keywarden/1.0"


def mask_key(key: str) -> str:
    """
    Mascara uma key mantendo os 8 primeiros e os 4 últimos caracteres.

    ## Exemplo:

        >>> mask_key("fk-abcdefghijklmnop")
        'fk-abcde...mnop'
    """
    return f"{key[:8]}...{key[-4:]}"


def format_period_date(value: Any) -> str:
    """Converte epoch-ms (ou ISO) para `YYYY-MM-DD`; ausente vira `N/A`."""
    if value is None or value == "":
        return "N/A"
    try:
        if isinstance(value, (int, float)):
            moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        else:
            moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, OverflowError, OSError):
        return "Invalid Date"
    return moment.strftime("%Y-%m-%d")


def _base_result(credential: Mapping[str, Any]) -> dict[str, Any]:
    # Nunca inclui a key nem a viewPassword no resultado
    return {
        "id": credential.get("id", ""),
        "alias": credential.get("alias", ""),
        "group": credential.get("group") or "default",
        "note": credential.get("note", ""),
        "enabled": credential.get("enabled", True) is not False,
        "maskedKey": mask_key(str(credential.get("key", ""))),
    }


def _failure(credential: Mapping[str, Any], error: str) -> dict[str, Any]:
    result = _base_result(credential)
    result.update({"valid": False, "error": error})
    return result


def fetch_key_usage(
    credential: Mapping[str, Any],
    url: str = DEFAULT_USAGE_URL,
    timeout: float = 10,
    session: requests.Session | None = None,
) -> dict[str, Any]:
    """
    Consulta o consumo de uma credencial.

    ## Parâmetros:

    - `credential`: Credencial com `key` em texto plano
    - `url`: Endpoint de consumo
    - `timeout`: Timeout em segundos
    - `session`: Sessão requests (opcional, para reuso e testes)

    ## Retorna:

    Dict com `valid`, `maskedKey` e, quando válido, `startDate`, `endDate`,
    `orgTotalTokensUsed`, `totalAllowance`, `usedRatio` e `remaining`.
    """
    key_id = credential.get("id", "")
    http = session or requests
    headers = {
        "Authorization": f"Bearer {credential.get('key', '')}",
        "User-Agent": USER_AGENT,
    }

    try:
        response = http.get(url, headers=headers, timeout=timeout)
    except requests.Timeout:
        logger.error("Key %s: timeout na consulta de consumo", key_id)
        return _failure(credential, "Request timeout")
    except requests.RequestException as e:
        logger.error("Key %s: falha na requisição: %s", key_id, e)
        return _failure(credential, str(e))

    if response.status_code != 200:
        logger.error("Key %s: consulta falhou com HTTP %s", key_id, response.status_code)
        return _failure(credential, f"HTTP {response.status_code}")

    try:
        payload = response.json()
    except ValueError as e:
        logger.error("Key %s: resposta não é JSON: %s", key_id, e)
        return _failure(credential, "Parse error")

    usage = payload.get("usage") if isinstance(payload, dict) else None
    standard = usage.get("standard") if isinstance(usage, dict) else None
    if not isinstance(standard, dict):
        return _failure(credential, "Invalid API response")

    try:
        used = standard.get("orgTotalTokensUsed") or 0
        allowance = standard.get("totalAllowance") or 0
        remaining = allowance - used
    except TypeError:
        logger.error("Key %s: valores de consumo inválidos", key_id)
        return _failure(credential, "Parse error")

    result = _base_result(credential)
    result.update(
        {
            "valid": True,
            "startDate": format_period_date(usage.get("startDate")),
            "endDate": format_period_date(usage.get("endDate")),
            "orgTotalTokensUsed": used,
            "totalAllowance": allowance,
            "usedRatio": standard.get("usedRatio"),
            "remaining": remaining,
        }
    )
    return result


class UsageClient:
    """
    Cliente de consumo configurado uma vez (URL + timeout + sessão).

    ## Exemplo:

        >>> client = UsageClient(timeout=5)
        >>> client.fetch({"id": "k1", "key": "fk-..."})["valid"]
        True
    """

    def __init__(
        self,
        url: str = DEFAULT_USAGE_URL,
        timeout: float = 10,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._session = session

    def fetch(self, credential: Mapping[str, Any]) -> dict[str, Any]:
        return fetch_key_usage(
            credential, url=self.url, timeout=self.timeout, session=self._session
        )
