# ============================================================
# 📦 src/ticket_clusterization/domain/haversine_utils.py
# ============================================================

import math

import numpy as np

R_TERRA_M = 6371000.0  # raio médio da Terra em metros


def haversine_m(coord1, coord2):
    """
    Calcula a distância entre dois pontos (lat, lon) em metros.
    """
    lat1, lon1 = coord1
    lat2, lon2 = coord2

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R_TERRA_M * c


def haversine_vetorizado_m(lat, lon, lats, lons) -> np.ndarray:
    """Distância (m) de um ponto a um vetor de pontos."""
    lats = np.radians(np.asarray(lats, dtype=float))
    lons = np.radians(np.asarray(lons, dtype=float))
    phi1 = math.radians(lat)

    dphi = lats - phi1
    dlambda = lons - math.radians(lon)

    a = np.sin(dphi / 2) ** 2 + math.cos(phi1) * np.cos(lats) * np.sin(dlambda / 2) ** 2
    return 2 * R_TERRA_M * np.arctan2(np.sqrt(a), np.sqrt(np.clip(1 - a, 0.0, None)))
