# ============================================================
# 📦 src/address_preprocessing/domain/utils_geo.py
# ============================================================

import os
from typing import List, Optional, Tuple

from geopy.distance import geodesic


def pontos_genericos() -> List[Tuple[float, float]]:
    """
    GEOCODE_GENERIC_POINTS="41.8781,-87.6298;..." : centros de cidade que o
    provedor devolve quando não acha o endereço exato.
    """
    bruto = os.getenv("GEOCODE_GENERIC_POINTS", "")
    pontos = []
    for par in bruto.split(";"):
        if not par.strip():
            continue
        lat, lon = par.split(",")
        pontos.append((float(lat), float(lon)))
    return pontos


RAIO_GENERICO_KM = 0.05


def coordenada_generica(
    lat: Optional[float],
    lon: Optional[float],
    pontos: Optional[List[Tuple[float, float]]] = None,
) -> bool:

    if lat is None or lon is None:
        return True

    # lat/lon = 0 foi usado como "sem coordenada" na base antiga
    if abs(lat) < 0.0001 and abs(lon) < 0.0001:
        return True

    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        return True

    for ref in (pontos_genericos() if pontos is None else pontos):
        if geodesic((lat, lon), ref).km < RAIO_GENERICO_KM:
            return True

    return False
