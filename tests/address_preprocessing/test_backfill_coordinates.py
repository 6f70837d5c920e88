# tests/address_preprocessing/test_backfill_coordinates.py

import threading

import pytest

from address_preprocessing.application.backfill_coordinates_use_case import (
    BackfillCoordinatesUseCase,
)
from address_preprocessing.entities.address_entity import StructuredAddress
from address_preprocessing.infrastructure.postgres_address_cache import (
    SQL_ATUALIZA_COORDENADAS,
    PostgresAddressCache,
)


COORDS = {
    "5303 S WASHTENAW AVE": (41.7965, -87.6921),
    "3238 S PULASKI": (41.8331, -87.7247),
    "1060 W ADDISON ST": (41.9474, -87.6553),
}


class _CacheFalso:
    """Mesma interface de backfill do PostgresAddressCache, em memória."""

    def __init__(self, pendentes, total=None):
        self.pendentes = pendentes
        self.total = total if total is not None else len(pendentes)
        self.atualizados = {}
        self.limites = []
        self._lock = threading.Lock()

    def list_missing_coordinates(self, limit=None):
        self.limites.append(limit)
        return self.pendentes[:limit] if limit else list(self.pendentes)

    def update_coordinates(self, location_id, latitude, longitude, external_place_id=None):
        with self._lock:
            self.atualizados[location_id] = (latitude, longitude, external_place_id)
        return True

    def coverage_stats(self):
        com = (self.total - len(self.pendentes)) + len(self.atualizados)
        return {
            "total": self.total,
            "com_coordenadas": com,
            "sem_coordenadas": self.total - com,
            "cobertura_pct": round(com / self.total * 100, 1) if self.total else 0.0,
        }


def _pendentes(*enderecos):
    return [
        (i + 1, StructuredAddress(number=n, cardinal=c, street=s, suffix=x))
        for i, (n, c, s, x) in enumerate(enderecos)
    ]


def test_backfill_updates_rows_and_reports_failures(geocoder_factory):
    cache = _CacheFalso(
        _pendentes(
            ("5303", "S", "WASHTENAW", "AVE"),
            ("9999", "N", "NOWHERE", "AVE"),
            ("3238", "S", "PULASKI", ""),
        ),
        total=10,
    )
    geocoder = geocoder_factory(COORDS)
    pausas = []

    result = BackfillCoordinatesUseCase(
        cache, geocoder, batch_size=2, localidade="Chicago, Illinois", sleep=pausas.append
    ).execute()

    assert (result.total, result.success, result.failed) == (3, 2, 1)
    assert cache.atualizados[1][:2] == (41.7965, -87.6921)
    assert cache.atualizados[3][2] == "place-3238 S PULASKI"
    assert result.errors == [
        {"location_id": 2, "address": "9999 N NOWHERE AVE", "reason": "zero_results"}
    ]
    assert sorted(geocoder.calls)[0] == "3238 S PULASKI, Chicago, Illinois"
    # dois lotes → uma pausa entre eles
    assert pausas == [1.0]
    assert result.coverage["com_coordenadas"] == 9
    assert result.success_rate == pytest.approx(66.7)


def test_backfill_with_nothing_pending_does_not_geocode(geocoder_factory):
    geocoder = geocoder_factory(COORDS)

    result = BackfillCoordinatesUseCase(_CacheFalso([], total=4), geocoder, sleep=lambda s: None).execute()

    assert geocoder.calls == []
    assert result.total == 0
    assert result.coverage["cobertura_pct"] == 100.0


def test_backfill_limit_is_forwarded(geocoder_factory):
    cache = _CacheFalso(_pendentes(("1060", "W", "ADDISON", "ST"), ("5303", "S", "WASHTENAW", "AVE")))

    result = BackfillCoordinatesUseCase(cache, geocoder_factory(COORDS), sleep=lambda s: None).execute(limit=1)

    assert cache.limites == [1]
    assert result.total == 1


def test_backfill_update_error_with_braces_is_recorded(geocoder_factory):
    class CacheQuebrado(_CacheFalso):
        def update_coordinates(self, location_id, *args):
            raise RuntimeError('violates check {"latitude": 0}')

    cache = CacheQuebrado(_pendentes(("1060", "W", "ADDISON", "ST")))

    result = BackfillCoordinatesUseCase(cache, geocoder_factory(COORDS), sleep=lambda s: None).execute()

    assert result.errors[0]["reason"] == "error"
    assert result.success == 0


def test_backfill_worker_pool_is_bounded_by_batch(geocoder_factory):
    uc = BackfillCoordinatesUseCase(_CacheFalso([]), geocoder_factory(COORDS), max_workers=8, batch_size=3)

    assert uc.max_workers == 3

    with pytest.raises(ValueError):
        BackfillCoordinatesUseCase(_CacheFalso([]), geocoder_factory(COORDS), batch_size=0)


# ============================================================
# 🗄️ PostgresAddressCache (pool falso)
# ============================================================

class _Cursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.conn.executados.append((sql, params))
        self.rowcount = 1

    def fetchone(self):
        return self.conn.linhas[0] if self.conn.linhas else None

    def fetchall(self):
        return list(self.conn.linhas)


class _Conn:
    def __init__(self, linhas=()):
        self.linhas = list(linhas)
        self.executados = []
        self.commits = 0

    def cursor(self, cursor_factory=None):
        return _Cursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        pass


class _Pool:
    def __init__(self, conn):
        self.conn = conn
        self.devolvidas = 0

    def getconn(self):
        return self.conn

    def putconn(self, conn):
        self.devolvidas += 1


def test_postgres_lists_rows_missing_coordinates():
    conn = _Conn([
        {"addressid": 4, "addressnumber": "3238", "addresscardinal": "S",
         "addressstreet": "PULASKI", "addresssuffix": None},
    ])
    pool = _Pool(conn)

    pendentes = PostgresAddressCache(pool=pool).list_missing_coordinates(limit=50)

    sql, params = conn.executados[0]
    assert "latitude = 0" in sql and "deletedat IS NULL" in sql
    assert sql.rstrip().endswith("LIMIT %s;")
    assert params == (50,)
    assert pendentes == [(4, StructuredAddress(number="3238", cardinal="S", street="PULASKI"))]
    assert pool.devolvidas == 1


def test_postgres_update_coordinates_and_coverage():
    conn = _Conn([{"total": 8, "com_coordenadas": 6}])
    cache = PostgresAddressCache(pool=_Pool(conn))

    assert cache.update_coordinates(4, 41.83, -87.72, "place-4") is True
    cobertura = cache.coverage_stats()

    assert conn.executados[0] == (SQL_ATUALIZA_COORDENADAS, (41.83, -87.72, "place-4", 4))
    assert cobertura == {"total": 8, "com_coordenadas": 6, "sem_coordenadas": 2, "cobertura_pct": 75.0}
    assert conn.commits == 2
