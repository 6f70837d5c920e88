# tests/ticket_clusterization/test_run_backfill_coordinates_cli.py

import json

import pytest

from address_preprocessing.entities.address_entity import StructuredAddress
from ticket_clusterization.cli import run_backfill_coordinates as cli


class _CacheBackfill:
    def __init__(self):
        self.atualizados = []
        self.fechado = False

    def ensure_schema(self):
        pass

    def close(self):
        self.fechado = True

    def list_missing_coordinates(self, limit=None):
        return [
            (1, StructuredAddress(number="3238", cardinal="S", street="PULASKI")),
            (2, StructuredAddress(number="9999", cardinal="N", street="NOWHERE", suffix="AVE")),
        ]

    def update_coordinates(self, location_id, latitude, longitude, external_place_id=None):
        self.atualizados.append(location_id)
        return True

    def coverage_stats(self):
        total, com = 5, 3 + len(self.atualizados)
        return {"total": total, "com_coordenadas": com, "sem_coordenadas": total - com,
                "cobertura_pct": round(com / total * 100, 1)}


@pytest.fixture(autouse=True)
def _sem_dotenv_nem_sinks(monkeypatch):
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)
    monkeypatch.setattr(cli, "setup_logging", lambda run_id: None)


def _ultimo_evento(capsys):
    linhas = [l for l in capsys.readouterr().out.splitlines() if l.strip()]
    return json.loads(linhas[-1])


def test_backfill_cli_reports_summary_and_closes_pool(monkeypatch, capsys, geocoder_factory):
    cache = _CacheBackfill()
    monkeypatch.setattr(cli, "test_db_connection", lambda: True)
    monkeypatch.setattr(cli, "PostgresAddressCache", lambda: cache)
    monkeypatch.setattr(cli, "GeocodingClient", lambda: geocoder_factory({"3238 S PULASKI": (41.83, -87.72)}))

    code = cli.main(["--pause", "0"])

    final = _ultimo_evento(capsys)
    assert code == 0
    assert final["status"] == "partial"
    assert (final["success"], final["failed"]) == (1, 1)
    assert final["coverage"]["com_coordenadas"] == 4
    assert cache.atualizados == [1]
    assert cache.fechado


def test_backfill_cli_without_database_fails(monkeypatch, capsys):
    monkeypatch.setattr(cli, "test_db_connection", lambda: False)

    assert cli.main([]) == 1
    assert _ultimo_evento(capsys)["status"] == "error"


def test_backfill_cli_rejects_zero_batch(monkeypatch, capsys, geocoder_factory):
    cache = _CacheBackfill()
    monkeypatch.setattr(cli, "test_db_connection", lambda: True)
    monkeypatch.setattr(cli, "PostgresAddressCache", lambda: cache)
    monkeypatch.setattr(cli, "GeocodingClient", lambda: geocoder_factory({}))

    assert cli.main(["--batch-size", "0"]) == 1
    assert cache.fechado
