# tests/address_preprocessing/test_geocoding_client.py

import requests

from address_preprocessing.domain.geocoding_client import GeocodingClient
from address_preprocessing.entities.address_entity import GeocodeFailure, GeocodeResult


class _Resposta:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("sem json")
        return self._payload


class _Sessao:
    def __init__(self, resposta=None, erro=None):
        self.resposta = resposta
        self.erro = erro
        self.chamadas = []

    def get(self, url, params=None, timeout=None):
        self.chamadas.append({"url": url, "params": params, "timeout": timeout})
        if self.erro is not None:
            raise self.erro
        return self.resposta


def _ok(lat=41.7965, lng=-87.6921):
    return {
        "status": "OK",
        "results": [
            {
                "geometry": {"location": {"lat": lat, "lng": lng}},
                "place_id": "ChIJ-washtenaw",
                "formatted_address": "5303 S Washtenaw Ave, Chicago, IL 60632, USA",
            }
        ],
    }


def test_geocode_success_returns_coordinates_and_place_id():
    sessao = _Sessao(_Resposta(200, _ok()))
    client = GeocodingClient(api_key="k", timeout=3, session=sessao)

    r = client.geocode("5303 S WASHTENAW AVE, Chicago, Illinois")

    assert isinstance(r, GeocodeResult)
    assert (r.latitude, r.longitude) == (41.7965, -87.6921)
    assert r.external_place_id == "ChIJ-washtenaw"
    assert sessao.chamadas[0]["timeout"] == 3
    assert sessao.chamadas[0]["params"]["address"] == "5303 S WASHTENAW AVE, Chicago, Illinois"
    assert client.stats["ok"] == 1


def test_timeout_degrades_to_failure():
    client = GeocodingClient(api_key="k", session=_Sessao(erro=requests.Timeout("lento")))

    r = client.geocode("5303 S WASHTENAW AVE")

    assert isinstance(r, GeocodeFailure)
    assert not r
    assert r.reason == "timeout"
    assert client.stats["timeout"] == 1


def test_connection_error_degrades_to_failure():
    client = GeocodingClient(api_key="k", session=_Sessao(erro=requests.ConnectionError("dns")))

    assert client.geocode("5303 S WASHTENAW AVE").reason == "request_error"


def test_non_ok_status_and_http_errors_are_failures():
    zero = GeocodingClient(api_key="k", session=_Sessao(_Resposta(200, {"status": "ZERO_RESULTS", "results": []})))
    http = GeocodingClient(api_key="k", session=_Sessao(_Resposta(500, None)))
    lixo = GeocodingClient(api_key="k", session=_Sessao(_Resposta(200, None)))

    assert zero.geocode("1 NOWHERE ST").reason == "zero_results"
    assert http.geocode("1 NOWHERE ST").reason == "http_500"
    assert lixo.geocode("1 NOWHERE ST").reason == "invalid_response"


def test_generic_coordinate_is_rejected():
    client = GeocodingClient(api_key="k", session=_Sessao(_Resposta(200, _ok(0.0, 0.0))))

    assert client.geocode("1 NOWHERE ST").reason == "generic_location"


def test_missing_api_key_never_calls_provider(monkeypatch):
    monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
    sessao = _Sessao(_Resposta(200, _ok()))
    client = GeocodingClient(session=sessao)

    r = client.geocode("5303 S WASHTENAW AVE")

    assert r.reason == "missing_api_key"
    assert sessao.chamadas == []


def test_empty_address_is_failure():
    client = GeocodingClient(api_key="k", session=_Sessao(_Resposta(200, _ok())))

    assert client.geocode("  ").reason == "parametro_vazio"


def test_generic_points_are_read_from_env_at_call_time(monkeypatch):
    client = GeocodingClient(api_key="k", session=_Sessao(_Resposta(200, _ok(41.8781, -87.6298))))

    monkeypatch.delenv("GEOCODE_GENERIC_POINTS", raising=False)
    assert isinstance(client.geocode("CHICAGO"), GeocodeResult)

    monkeypatch.setenv("GEOCODE_GENERIC_POINTS", "41.8781,-87.6298;42.0451,-87.6877")
    assert client.geocode("CHICAGO").reason == "generic_location"
