# ============================================================
# 📦 src/ticket_clusterization/domain/errors.py
# ============================================================

from address_preprocessing.domain.errors import (  # noqa: F401 (reexport)
    NOT_PARSEABLE,
    ClusteringError,
    NoLocationsResolved,
)
from address_preprocessing.entities.address_entity import GeocodeFailure  # noqa: F401


class InvalidConfiguration(ClusteringError, ValueError):
    """Limite de distância/tamanho inválido, rejeitado antes de qualquer trabalho."""
