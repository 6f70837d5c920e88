# ============================================================
# 📦 src/ticket_clusterization/application/cluster_tickets_use_case.py
# ============================================================

import time
from typing import Dict, List, Optional, Sequence

from loguru import logger

from address_preprocessing.domain.address_normalizer import normalize
from address_preprocessing.domain.address_resolver import AddressResolver
from address_preprocessing.domain.geocoding_client import GeocodingClient
from address_preprocessing.domain.utils_geo import coordenada_generica
from address_preprocessing.entities.address_entity import Location, StructuredAddress
from address_preprocessing.infrastructure.address_cache import AddressCache
from ticket_clusterization.config.settings import ClusteringOptions
from ticket_clusterization.domain.entities import ClusteringResult, RawTicket
from ticket_clusterization.domain.errors import NoLocationsResolved
from ticket_clusterization.domain.proximity_clusterer import ProximityClusterer, validar_parametros
from ticket_clusterization.domain.ticket_cluster_mapper import TicketClusterMapper


def _coordenadas_validas(ticket: RawTicket):
    """(lat, lon) em float ou None quando ausentes/inválidas."""
    try:
        lat, lon = float(ticket.latitude), float(ticket.longitude)
    except (TypeError, ValueError):
        return None
    # NaN e fora de faixa também caem aqui
    if coordenada_generica(lat, lon, pontos=[]):
        return None
    return lat, lon


class ClusterTicketsUseCase:
    """
    Tickets → endereços únicos → locais → clusters de locais → clusters de
    tickets. Falhas por endereço viram `failed_addresses` /
    `unassigned_tickets`; só falha total (NoLocationsResolved) ou
    configuração inválida (InvalidConfiguration) interrompem a chamada.
    """

    def __init__(
        self,
        cache: AddressCache,
        geocoder: Optional[GeocodingClient] = None,
        options: Optional[ClusteringOptions] = None,
        clusterer: Optional[ProximityClusterer] = None,
    ):
        self.cache = cache
        self.geocoder = geocoder or GeocodingClient()
        self.options = options or ClusteringOptions.from_env()
        self.clusterer = clusterer or ProximityClusterer()

    def execute(
        self,
        tickets: Sequence[RawTicket],
        options: Optional[ClusteringOptions] = None,
    ) -> ClusteringResult:

        opts = options or self.options
        inicio = time.time()

        # ============================================================
        # 0) Configuração validada antes de qualquer I/O
        # ============================================================
        validar_parametros(opts.max_distance_meters, opts.max_cluster_size)

        logger.info(
            f"🏁 Iniciando clusterização de tickets | tickets={len(tickets)} | "
            f"params={opts.snapshot()}"
        )

        # ============================================================
        # 1) Endereços únicos
        # ============================================================
        enderecos = list(dict.fromkeys(t.address for t in tickets))
        logger.info(f"📦 {len(enderecos)} endereços únicos em {len(tickets)} tickets.")

        # ============================================================
        # 2) Resolução (cache → geocoding)
        # ============================================================
        resolver = AddressResolver(
            cache=self.cache,
            geocoder=self.geocoder,
            max_workers=opts.geocode_max_workers,
        )
        resolucao = resolver.resolve(enderecos)
        resolver.summary()

        return self._agrupar(
            tickets,
            enderecos,
            resolucao.resolved,
            resolucao.failed,
            resolucao.failures,
            opts,
            inicio,
        )

    def execute_with_coordinates(
        self,
        tickets: Sequence[RawTicket],
        options: Optional[ClusteringOptions] = None,
    ) -> ClusteringResult:
        """
        Variante para tickets que já trazem latitude/longitude: não consulta
        cache nem geocoder. Tickets sem coordenada válida ficam sem cluster.
        """
        opts = options or self.options
        inicio = time.time()

        validar_parametros(opts.max_distance_meters, opts.max_cluster_size)

        logger.info(
            f"🏁 Clusterização com coordenadas prévias | tickets={len(tickets)} | "
            f"params={opts.snapshot()}"
        )

        enderecos = list(dict.fromkeys(t.address for t in tickets))

        # primeiro ticket com coordenada válida define o local do endereço
        coords_por_endereco: Dict[str, tuple] = {}
        for ticket in tickets:
            if ticket.address in coords_por_endereco:
                continue
            coords = _coordenadas_validas(ticket)
            if coords is None:
                logger.warning(
                    f"[COORDS][INVALIDA] ticket={ticket.id} "
                    f"lat={ticket.latitude!r} lon={ticket.longitude!r}"
                )
                continue
            coords_por_endereco[ticket.address] = coords

        locations: List[Location] = []
        failed: List[str] = []
        failures: Dict[str, str] = {}

        for endereco in enderecos:
            if endereco not in coords_por_endereco:
                failed.append(endereco)
                failures[endereco] = "invalid_coordinates"
                continue

            lat, lon = coords_por_endereco[endereco]
            structured = normalize(endereco) or StructuredAddress(number="", street=endereco)
            locations.append(
                Location(
                    location_id=len(locations) + 1,
                    structured_address=structured,
                    latitude=lat,
                    longitude=lon,
                    addresses=(endereco,),
                )
            )

        logger.info(
            f"📦 {len(locations)} locais com coordenadas | "
            f"{len(failed)} endereços sem coordenada válida."
        )

        if not locations:
            raise NoLocationsResolved(failed)

        return self._agrupar(tickets, enderecos, locations, failed, failures, opts, inicio)

    # ============================================================
    # 3) Clusterização dos LOCAIS + 4) expansão para tickets
    # ============================================================
    def _agrupar(self, tickets, enderecos, locations, failed, failures, opts, inicio):
        clusters = self.clusterer.cluster(
            locations,
            opts.max_distance_meters,
            opts.max_cluster_size,
        )

        mapper = TicketClusterMapper(opts.min_locations_per_cluster)
        ticket_clusters = mapper.map_to_tickets(clusters, tickets)
        nao_atribuidos = mapper.unassigned(tickets, ticket_clusters)

        if nao_atribuidos:
            logger.warning(
                f"⚠️ {len(nao_atribuidos)} tickets sem cluster "
                f"({len(failed)} endereços não resolvidos)."
            )

        duracao = time.time() - inicio
        stats = {
            "total_tickets": len(tickets),
            "unique_addresses": len(enderecos),
            "resolved_locations": len(locations),
            "failed_addresses": len(failed),
            "clusters": len(ticket_clusters),
            "assigned_tickets": sum(tc.ticket_count for tc in ticket_clusters),
            "unassigned_tickets": len(nao_atribuidos),
            "duration_seconds": round(duracao, 2),
        }

        logger.success(
            f"✅ Clusterização de tickets concluída | clusters={stats['clusters']} | "
            f"atribuídos={stats['assigned_tickets']}/{stats['total_tickets']} | "
            f"{stats['duration_seconds']}s"
        )

        return ClusteringResult(
            clusters=ticket_clusters,
            unassigned_tickets=nao_atribuidos,
            failed_addresses=failed,
            failures=failures,
            stats=stats,
        )
