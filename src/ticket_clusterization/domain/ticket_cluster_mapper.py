# ============================================================
# 📦 src/ticket_clusterization/domain/ticket_cluster_mapper.py
# ============================================================

from typing import Dict, List, Sequence

from loguru import logger

from ticket_clusterization.domain.entities import Cluster, RawTicket, TicketCluster


class TicketClusterMapper:
    """
    Expande clusters de locais para clusters de tickets: todos os tickets
    de um endereço vão para o cluster do local correspondente.
    """

    def __init__(self, min_locations_per_cluster: int = 1):
        self.min_locations_per_cluster = min_locations_per_cluster

    def map_to_tickets(
        self,
        clusters: Sequence[Cluster],
        tickets: Sequence[RawTicket],
    ) -> List[TicketCluster]:

        # endereço bruto → índice do cluster (locais particionam os endereços)
        cluster_por_endereco: Dict[str, int] = {}
        for idx, cluster in enumerate(clusters):
            for loc in cluster.members:
                for raw in loc.addresses:
                    cluster_por_endereco[raw] = idx

        tickets_por_cluster: List[List[RawTicket]] = [[] for _ in clusters]
        for ticket in tickets:
            idx = cluster_por_endereco.get(ticket.address)
            if idx is not None:
                tickets_por_cluster[idx].append(ticket)

        ticket_clusters = []
        for cluster, cluster_tickets in zip(clusters, tickets_por_cluster):
            n_locais = len(cluster.members)
            ticket_clusters.append(
                TicketCluster(
                    cluster_id=cluster.cluster_id,
                    centroid_lat=cluster.centroid_lat,
                    centroid_lng=cluster.centroid_lng,
                    locations=list(cluster.members),
                    tickets=cluster_tickets,
                    ticket_count=len(cluster_tickets),
                    location_count=n_locais,
                    tickets_per_location=(len(cluster_tickets) / n_locais) if n_locais else 0.0,
                    meets_min_locations=n_locais >= self.min_locations_per_cluster,
                )
            )

        self._log_resumo(ticket_clusters)
        return ticket_clusters

    @staticmethod
    def unassigned(
        tickets: Sequence[RawTicket],
        ticket_clusters: Sequence[TicketCluster],
    ) -> List[RawTicket]:
        """Tickets fora de qualquer cluster, na ordem de entrada."""
        atribuidos = {id(t) for tc in ticket_clusters for t in tc.tickets}
        return [t for t in tickets if id(t) not in atribuidos]

    @staticmethod
    def _log_resumo(ticket_clusters: Sequence[TicketCluster]):
        total_tickets = sum(tc.ticket_count for tc in ticket_clusters)
        total_locais = sum(tc.location_count for tc in ticket_clusters)
        media = (total_tickets / total_locais) if total_locais else 0.0

        logger.info("=== RESUMO DA CLUSTERIZAÇÃO ===")
        logger.info(f"Clusters de locais ........: {len(ticket_clusters)}")
        logger.info(f"Locais únicos .............: {total_locais}")
        logger.info(f"Tickets atribuídos ........: {total_tickets}")
        logger.info(f"Média de tickets por local : {media:.2f}")

        for tc in ticket_clusters:
            aviso = "" if tc.meets_min_locations else " (abaixo do mínimo)"
            logger.debug(
                f"Cluster {tc.cluster_id}: {tc.location_count} locais, "
                f"{tc.ticket_count} tickets{aviso}"
            )
