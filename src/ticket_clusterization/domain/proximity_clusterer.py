# ============================================================
# 📦 src/ticket_clusterization/domain/proximity_clusterer.py
# ============================================================

from numbers import Integral
from typing import List, Sequence

import numpy as np
from loguru import logger

from address_preprocessing.entities.address_entity import Location
from ticket_clusterization.domain.entities import Cluster
from ticket_clusterization.domain.errors import InvalidConfiguration
from ticket_clusterization.domain.haversine_utils import haversine_vetorizado_m


# ============================================================
# 📍 Validação de parâmetros
# ============================================================

def validar_parametros(max_distance_meters, max_cluster_size):
    if isinstance(max_cluster_size, bool) or not isinstance(max_cluster_size, Integral):
        raise InvalidConfiguration(
            f"max_cluster_size deve ser inteiro, recebido {max_cluster_size!r}"
        )
    if max_cluster_size < 1:
        raise InvalidConfiguration(f"max_cluster_size deve ser >= 1, recebido {max_cluster_size}")

    try:
        distancia = float(max_distance_meters)
    except (TypeError, ValueError):
        raise InvalidConfiguration(
            f"max_distance_meters inválido: {max_distance_meters!r}"
        ) from None
    # NaN falha em "> 0"; infinito = só o limite de capacidade
    if not distancia > 0:
        raise InvalidConfiguration(
            f"max_distance_meters deve ser > 0, recebido {max_distance_meters}"
        )


def centroide(members: Sequence[Location]):
    """Média simples de lat/lon (aproximação planar, escala de cidade)."""
    arr = np.array([[m.latitude, m.longitude] for m in members], dtype=float)
    lat, lon = arr.mean(axis=0)
    return float(lat), float(lon)


def cluster_radius_stats(cluster: Cluster):
    """Distância média e máxima (m) dos membros ao centróide."""
    dists = haversine_vetorizado_m(
        cluster.centroid_lat,
        cluster.centroid_lng,
        [m.latitude for m in cluster.members],
        [m.longitude for m in cluster.members],
    )
    return float(np.mean(dists)), float(np.max(dists))


# ============================================================
# 🚀 Algoritmo principal
# ============================================================

class ProximityClusterer:
    """
    Agrupamento guloso por proximidade com capacidade.

    Semente = local não agrupado de menor location_id; candidatos entram em
    ordem crescente de (distância à semente, location_id) enquanto estiverem
    a <= max_distance_meters da semente e o cluster tiver < max_cluster_size.
    Determinístico para a mesma entrada. Não busca o número mínimo de
    clusters.
    """

    def cluster(
        self,
        locations: Sequence[Location],
        max_distance_meters: float,
        max_cluster_size: int,
    ) -> List[Cluster]:

        validar_parametros(max_distance_meters, max_cluster_size)
        max_distance_meters = float(max_distance_meters)

        if not locations:
            logger.warning("⚠️ Nenhum local para clusterizar.")
            return []

        # 1️⃣ Ordena por chave estável
        ordenados = sorted(locations, key=lambda loc: loc.location_id)
        ids = np.array([loc.location_id for loc in ordenados])
        if len(np.unique(ids)) != len(ids):
            raise InvalidConfiguration("location_id duplicado na entrada da clusterização")

        lats = np.array([loc.latitude for loc in ordenados], dtype=float)
        lons = np.array([loc.longitude for loc in ordenados], dtype=float)

        logger.info(
            f"🚀 Iniciando clusterização por proximidade | locais={len(ordenados)} | "
            f"raio={max_distance_meters:.0f} m | capacidade={max_cluster_size}"
        )

        clusters: List[Cluster] = []
        restantes = np.arange(len(ordenados))

        # 2️⃣ Uma semente por iteração
        while restantes.size:
            semente = restantes[0]
            outros = restantes[1:]

            dist = haversine_vetorizado_m(lats[semente], lons[semente], lats[outros], lons[outros])

            # empate na distância → menor location_id
            ordem = np.lexsort((ids[outros], dist))
            dentro = dist[ordem] <= max_distance_meters

            # ordenado por distância: os que estão no raio formam um prefixo
            n_dentro = int(np.argmin(dentro)) if not dentro.all() else int(dentro.size)
            n_admitidos = min(n_dentro, max_cluster_size - 1)

            admitidos = np.concatenate(([semente], outros[ordem[:n_admitidos]])).astype(int)
            members = [ordenados[i] for i in admitidos]

            # 3️⃣ Centróide após fechar o cluster
            lat_c, lon_c = centroide(members)
            cluster = Cluster(
                cluster_id=len(clusters) + 1,
                centroid_lat=lat_c,
                centroid_lng=lon_c,
                members=members,
            )
            cluster.raio_med_m, cluster.raio_max_m = cluster_radius_stats(cluster)
            clusters.append(cluster)

            if len(members) == 1:
                logger.debug(
                    f"📍 Cluster unitário {cluster.cluster_id} | location_id={members[0].location_id}"
                )

            # 4️⃣ Remove admitidos e repete
            restantes = np.setdiff1d(restantes, admitidos, assume_unique=True)

        # Métricas
        tamanhos = [len(c) for c in clusters]
        media_intra = np.mean([c.raio_med_m for c in clusters])
        logger.success(
            f"✅ Clusterização concluída | K={len(clusters)} | "
            f"média={np.mean(tamanhos):.1f} locais | dist_média_intra={media_intra:.0f} m"
        )
        logger.debug(f"Tamanhos={tamanhos}")

        return clusters
