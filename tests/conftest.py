# tests/conftest.py

import math
import threading

import pytest

from address_preprocessing.entities.address_entity import (
    GeocodeFailure,
    GeocodeResult,
    Location,
    StructuredAddress,
)

METROS_POR_GRAU_LAT = 6371000.0 * math.pi / 180.0

BASE_LAT = 41.7990
BASE_LNG = -87.6946


class FakeGeocoder:
    """Geocoder em memória: chave = parte antes da primeira vírgula."""

    def __init__(self, coords=None):
        self.coords = {" ".join(k.upper().split()): v for k, v in (coords or {}).items()}
        self.calls = []
        self._lock = threading.Lock()

    def geocode(self, address):
        with self._lock:
            self.calls.append(address)

        chave = " ".join(address.split(",")[0].upper().split())
        if chave in self.coords:
            lat, lng = self.coords[chave]
            return GeocodeResult(latitude=lat, longitude=lng, external_place_id=f"place-{chave}")
        return GeocodeFailure(address=address, reason="zero_results")


def norte(metros, lat=BASE_LAT, lng=BASE_LNG):
    return (lat + metros / METROS_POR_GRAU_LAT, lng)


def make_location(location_id, lat, lng, addresses=()):
    return Location(
        location_id=location_id,
        structured_address=StructuredAddress(number=str(location_id), street="TEST", suffix="ST"),
        latitude=lat,
        longitude=lng,
        addresses=tuple(addresses),
    )


@pytest.fixture
def geocoder_factory():
    return FakeGeocoder


@pytest.fixture
def location_factory():
    return make_location


@pytest.fixture
def offset_north():
    return norte
