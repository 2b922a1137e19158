"""Erros do motor de roteamento e precificação PIX."""

from __future__ import annotations


class PixEngineError(Exception):
    """Base dos erros do motor PIX."""


class InvalidAmountError(PixEngineError, ValueError):
    """Valor de transação negativo, não finito ou não inteiro em centavos."""


class ConfigurationError(PixEngineError, RuntimeError):
    """Configuração ausente ou inconsistente (ex.: política global inexistente).

    Também usado para referências pendentes (regra apontando para plano ou PSP
    removido) quando detectadas na escrita administrativa.
    """


class InconsistentPlanError(PixEngineError, ValueError):
    """Plano de precificação inválido (ex.: ``min_fee > max_fee``)."""
