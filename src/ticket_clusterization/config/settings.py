# ============================================================
# 📦 src/ticket_clusterization/config/settings.py
# ============================================================

import dataclasses
import os
from dataclasses import dataclass

from ticket_clusterization.domain.errors import InvalidConfiguration


# Limite de lote do motor de rotas externo
MAX_CLUSTER_SIZE_PADRAO = 95
MAX_DISTANCE_METERS_PADRAO = 30000.0
MIN_LOCATIONS_PADRAO = 1
GEOCODE_MAX_WORKERS_PADRAO = 6


def _env(nome, tipo, padrao):
    bruto = os.getenv(nome)
    if bruto is None or not bruto.strip():
        return padrao
    try:
        return tipo(bruto)
    except ValueError:
        raise InvalidConfiguration(f"{nome} inválido: {bruto!r}") from None


@dataclass(frozen=True)
class ClusteringOptions:
    """Parâmetros da clusterização; todos sobrescrevíveis por chamada."""
    max_distance_meters: float = MAX_DISTANCE_METERS_PADRAO
    max_cluster_size: int = MAX_CLUSTER_SIZE_PADRAO
    min_locations_per_cluster: int = MIN_LOCATIONS_PADRAO  # só informativo
    geocode_max_workers: int = GEOCODE_MAX_WORKERS_PADRAO

    @classmethod
    def from_env(cls) -> "ClusteringOptions":
        return cls(
            max_distance_meters=_env("CLUSTER_MAX_DISTANCE_METERS", float, MAX_DISTANCE_METERS_PADRAO),
            max_cluster_size=_env("CLUSTER_MAX_SIZE", int, MAX_CLUSTER_SIZE_PADRAO),
            min_locations_per_cluster=_env("CLUSTER_MIN_LOCATIONS", int, MIN_LOCATIONS_PADRAO),
            geocode_max_workers=_env("GEOCODE_MAX_WORKERS", int, GEOCODE_MAX_WORKERS_PADRAO),
        )

    def with_overrides(self, **overrides) -> "ClusteringOptions":
        valores = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **valores)

    def snapshot(self) -> dict:
        return dataclasses.asdict(self)
