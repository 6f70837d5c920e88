# ============================================================
# 📦 src/address_preprocessing/domain/errors.py
# ============================================================

from typing import List, Optional


class ClusteringError(Exception):
    """Base de erros fatais do pipeline endereço → cluster."""


class _NotParseable:
    """
    Sentinela: endereço não casa com nenhum padrão conhecido.
    Não é exceção: quem chama registra aviso e pula o endereço.
    """

    _instancia = None

    def __new__(cls):
        if cls._instancia is None:
            cls._instancia = super().__new__(cls)
        return cls._instancia

    def __bool__(self):
        return False

    def __repr__(self):
        return "NotParseable"


NOT_PARSEABLE = _NotParseable()


class NoLocationsResolved(ClusteringError):
    """Nenhum endereço do lote foi resolvido (fatal para o lote)."""

    def __init__(self, failed: Optional[List[str]] = None):
        self.failed = list(failed or [])
        super().__init__(
            f"Nenhum local resolvido ({len(self.failed)} endereços com falha)"
        )
