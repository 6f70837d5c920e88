# ==========================================================
# 📦 src/ticket_clusterization/domain/entities.py
# ==========================================================

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from address_preprocessing.entities.address_entity import Location


# ==========================================================
# 🎫 Ticket (somente leitura, vem do sistema de tickets)
# ==========================================================
@dataclass(frozen=True)
class RawTicket:
    """
    Ticket de campo. `fields` passa adiante sem alteração.
    latitude/longitude só vêm preenchidos quando a origem já traz coordenadas.
    """
    id: Any
    address: str
    fields: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    latitude: Optional[Any] = None
    longitude: Optional[Any] = None

    def to_dict(self) -> dict:
        d = {"id": self.id, "address": self.address, **self.fields}
        if self.latitude is not None or self.longitude is not None:
            d["latitude"] = self.latitude
            d["longitude"] = self.longitude
        return d


# ==========================================================
# 🗺️ Cluster de locais (efêmero)
# ==========================================================
@dataclass
class Cluster:
    cluster_id: int
    centroid_lat: float
    centroid_lng: float
    members: List[Location] = field(default_factory=list)

    # 🔹 Métricas de observabilidade (metros)
    raio_med_m: float = 0.0
    raio_max_m: float = 0.0

    def __len__(self):
        return len(self.members)


# ==========================================================
# 📦 Cluster expandido para tickets (saída final)
# ==========================================================
@dataclass
class TicketCluster:
    cluster_id: int
    centroid_lat: float
    centroid_lng: float
    locations: List[Location]
    tickets: List[RawTicket]
    ticket_count: int
    location_count: int
    tickets_per_location: float
    meets_min_locations: bool = True

    def to_dict(self) -> dict:
        return {
            "cluster_id": self.cluster_id,
            "centroid_lat": self.centroid_lat,
            "centroid_lng": self.centroid_lng,
            "ticket_count": self.ticket_count,
            "location_count": self.location_count,
            "tickets_per_location": round(self.tickets_per_location, 4),
            "meets_min_locations": self.meets_min_locations,
            "locations": [loc.to_dict() for loc in self.locations],
            "tickets": [t.to_dict() for t in self.tickets],
        }


# ==========================================================
# 🏁 Resultado de uma execução completa
# ==========================================================
@dataclass
class ClusteringResult:
    clusters: List[TicketCluster]
    unassigned_tickets: List[RawTicket]
    failed_addresses: List[str]
    failures: Dict[str, str] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_addresses or self.unassigned_tickets)

    def to_dict(self) -> dict:
        return {
            "status": "partial" if self.is_partial else "done",
            "stats": self.stats,
            "clusters": [c.to_dict() for c in self.clusters],
            "unassigned_tickets": [t.to_dict() for t in self.unassigned_tickets],
            "failed_addresses": [
                {"address": a, "reason": self.failures.get(a)} for a in self.failed_addresses
            ],
        }
