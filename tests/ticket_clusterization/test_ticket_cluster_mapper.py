# tests/ticket_clusterization/test_ticket_cluster_mapper.py

import pytest

from ticket_clusterization.domain.entities import Cluster, RawTicket
from ticket_clusterization.domain.ticket_cluster_mapper import TicketClusterMapper


@pytest.fixture
def clusters(location_factory):
    washtenaw = location_factory(
        1, 41.7965, -87.6921,
        addresses=("5303 S WASHTENAW AVE, Chicago, Illinois", "5303 s washtenaw ave"),
    )
    pulaski = location_factory(2, 41.8331, -87.7247, addresses=("3238 S PULASKI",))
    addison = location_factory(3, 41.9474, -87.6553, addresses=("1060 W ADDISON ST",))

    return [
        Cluster(cluster_id=1, centroid_lat=41.81, centroid_lng=-87.70, members=[washtenaw, pulaski]),
        Cluster(cluster_id=2, centroid_lat=41.9474, centroid_lng=-87.6553, members=[addison]),
    ]


@pytest.fixture
def tickets():
    return [
        RawTicket(id="T1", address="5303 S WASHTENAW AVE, Chicago, Illinois", fields={"type": "DIG"}),
        RawTicket(id="T2", address="5303 s washtenaw ave"),
        RawTicket(id="T3", address="3238 S PULASKI"),
        RawTicket(id="T4", address="1060 W ADDISON ST"),
        RawTicket(id="T5", address="1060 W ADDISON ST"),
        RawTicket(id="T6", address="???"),
    ]


def test_every_resolvable_ticket_lands_in_exactly_one_cluster(clusters, tickets):
    resultado = TicketClusterMapper().map_to_tickets(clusters, tickets)

    ids = [t.id for tc in resultado for t in tc.tickets]
    assert sorted(ids) == ["T1", "T2", "T3", "T4", "T5"]
    assert sum(tc.ticket_count for tc in resultado) == 5


def test_counts_and_ratio(clusters, tickets):
    primeiro, segundo = TicketClusterMapper().map_to_tickets(clusters, tickets)

    assert [t.id for t in primeiro.tickets] == ["T1", "T2", "T3"]
    assert (primeiro.ticket_count, primeiro.location_count) == (3, 2)
    assert primeiro.tickets_per_location == pytest.approx(1.5)
    assert (segundo.ticket_count, segundo.location_count) == (2, 1)
    assert segundo.tickets_per_location == pytest.approx(2.0)
    assert (segundo.centroid_lat, segundo.centroid_lng) == (41.9474, -87.6553)


def test_unassigned_lists_tickets_outside_every_cluster(clusters, tickets):
    mapper = TicketClusterMapper()
    resultado = mapper.map_to_tickets(clusters, tickets)

    assert [t.id for t in mapper.unassigned(tickets, resultado)] == ["T6"]


def test_min_locations_is_informational_only(clusters, tickets):
    resultado = TicketClusterMapper(min_locations_per_cluster=2).map_to_tickets(clusters, tickets)

    assert len(resultado) == 2
    assert [tc.meets_min_locations for tc in resultado] == [True, False]


def test_passthrough_fields_survive_serialization(clusters, tickets):
    primeiro = TicketClusterMapper().map_to_tickets(clusters, tickets)[0]
    d = primeiro.to_dict()

    assert d["tickets"][0] == {"id": "T1", "address": "5303 S WASHTENAW AVE, Chicago, Illinois", "type": "DIG"}
    assert d["locations"][0]["raw_addresses"] == [
        "5303 S WASHTENAW AVE, Chicago, Illinois",
        "5303 s washtenaw ave",
    ]
