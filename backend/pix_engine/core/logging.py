"""Configuração de logging estruturado padrão da aplicação."""

from __future__ import annotations

from contextvars import ContextVar
import logging
from collections.abc import Iterator
from typing import Any

from contextlib import contextmanager

import structlog

from pix_engine.config import get_settings


_REQUEST_ID_VAR: ContextVar[str | None] = ContextVar("request_id", default=None)
_TENANT_ID_VAR: ContextVar[str | None] = ContextVar("tenant_id", default=None)
_PARTNER_ID_VAR: ContextVar[str | None] = ContextVar("partner_id", default=None)


def _to_str(value: Any) -> str | None:
    """Converte valor de contexto para string quando aplicável."""
    if value is None:
        return None
    return str(value)


def _is_production(settings) -> bool:
    environment = settings.environment.lower()
    return not settings.debug and environment not in {"development", "dev", "local", "test"}


@contextmanager
def bind_request_context(
    *,
    request_id: str | None = None,
    tenant_id: str | None = None,
    partner_id: str | None = None,
) -> Iterator[None]:
    """Adiciona contexto de request/checkout aos logs via contextvars."""
    tokens = []
    if request_id is not None:
        tokens.append((_REQUEST_ID_VAR, _REQUEST_ID_VAR.set(_to_str(request_id))))
    if tenant_id is not None:
        tokens.append((_TENANT_ID_VAR, _TENANT_ID_VAR.set(_to_str(tenant_id))))
    if partner_id is not None:
        tokens.append((_PARTNER_ID_VAR, _PARTNER_ID_VAR.set(_to_str(partner_id))))

    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def inject_request_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Injeta contexto atual (request/tenant/partner) no evento de log."""
    del logger, method_name

    request_id = _REQUEST_ID_VAR.get()
    tenant_id = _TENANT_ID_VAR.get()
    partner_id = _PARTNER_ID_VAR.get()

    if request_id is not None:
        event_dict.setdefault("request_id", request_id)
    if tenant_id is not None:
        event_dict.setdefault("tenant_id", tenant_id)
    if partner_id is not None:
        event_dict.setdefault("partner_id", partner_id)

    return event_dict


def configure_structlog() -> None:
    """Configura structlog com saída estruturada para observabilidade."""
    settings = get_settings()
    is_production = _is_production(settings)

    logging.basicConfig(level=logging.INFO, format="%(message)s", force=True)

    logger_processors: list[Any] = [
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        inject_request_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer = (
        structlog.processors.JSONRenderer()
        if is_production
        else structlog.dev.ConsoleRenderer()
    )
    logger_processors.append(renderer)

    structlog.configure(
        processors=logger_processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if settings.debug else logging.INFO
        ),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Retorna logger estruturado para o módulo informado."""
    return structlog.get_logger(name)
