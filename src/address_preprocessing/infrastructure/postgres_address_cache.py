# ============================================================
# 📦 src/address_preprocessing/infrastructure/postgres_address_cache.py
# ============================================================

import time
from functools import wraps
from typing import List, Optional, Tuple

import psycopg2
from psycopg2.extras import RealDictCursor
from loguru import logger

from address_preprocessing.entities.address_entity import Location, StructuredAddress
from address_preprocessing.infrastructure.address_cache import AddressCache
from database.db_connection import create_pool, get_connection_context


# ============================================================
# 🔁 Decorator de retry com backoff exponencial
# ============================================================
def retry_on_failure(max_retries=3, delay=0.5, backoff=2.0):
    """Retenta apenas erros de conexão; o último erro é propagado."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            tentativa = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
                    tentativa += 1
                    if tentativa >= max_retries:
                        logger.error(f"🚨 Falha após {max_retries} tentativas em {func.__name__}")
                        raise
                    logger.warning(
                        f"⚠️ Erro de conexão ({func.__name__}) tentativa "
                        f"{tentativa}/{max_retries}: {e}"
                    )
                    time.sleep(delay * (backoff ** (tentativa - 1)))
        return wrapper
    return decorator


SQL_SCHEMA = """
    CREATE TABLE IF NOT EXISTS addresses (
        addressid        SERIAL PRIMARY KEY,
        addressnumber    VARCHAR(20)  NOT NULL,
        addresscardinal  VARCHAR(1)   NOT NULL DEFAULT '',
        addressstreet    VARCHAR(255) NOT NULL,
        addresssuffix    VARCHAR(10)  NOT NULL DEFAULT '',
        latitude         DOUBLE PRECISION,
        longitude        DOUBLE PRECISION,
        placeid          VARCHAR(255),
        createdat        TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updatedat        TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        deletedat        TIMESTAMP,
        CONSTRAINT uq_addresses_structured
            UNIQUE (addressnumber, addresscardinal, addressstreet, addresssuffix)
    );
"""

SQL_LOOKUP = """
    SELECT addressid, addressnumber, addresscardinal, addressstreet, addresssuffix,
           latitude, longitude, placeid, updatedat
    FROM addresses
    WHERE addressnumber = %s
      AND COALESCE(addresscardinal, '') = %s
      AND addressstreet = %s
      AND COALESCE(addresssuffix, '') = %s
      AND latitude IS NOT NULL
      AND longitude IS NOT NULL
      AND deletedat IS NULL
    LIMIT 1;
"""

SQL_UPSERT = """
    INSERT INTO addresses (
        addressnumber, addresscardinal, addressstreet, addresssuffix,
        latitude, longitude, placeid, createdat, updatedat
    )
    VALUES (%s, %s, %s, %s, %s, %s, %s, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
    ON CONFLICT (addressnumber, addresscardinal, addressstreet, addresssuffix)
    DO UPDATE SET
        latitude  = EXCLUDED.latitude,
        longitude = EXCLUDED.longitude,
        placeid   = EXCLUDED.placeid,
        updatedat = CURRENT_TIMESTAMP,
        deletedat = NULL
    RETURNING addressid, addressnumber, addresscardinal, addressstreet, addresssuffix,
              latitude, longitude, placeid, updatedat;
"""

# linhas sem coordenada útil (NULL ou 0), candidatas a re-geocodificação
SQL_PENDENTES = """
    SELECT addressid, addressnumber, addresscardinal, addressstreet, addresssuffix
    FROM addresses
    WHERE (latitude IS NULL OR longitude IS NULL OR latitude = 0 OR longitude = 0)
      AND deletedat IS NULL
    ORDER BY addressid
"""

SQL_ATUALIZA_COORDENADAS = """
    UPDATE addresses
    SET latitude  = %s,
        longitude = %s,
        placeid   = %s,
        updatedat = CURRENT_TIMESTAMP
    WHERE addressid = %s;
"""

SQL_COBERTURA = """
    SELECT
        COUNT(*) AS total,
        COUNT(*) FILTER (
            WHERE latitude IS NOT NULL AND longitude IS NOT NULL
              AND latitude != 0 AND longitude != 0
        ) AS com_coordenadas
    FROM addresses
    WHERE deletedat IS NULL;
"""


def _row_to_location(row: dict) -> Location:
    return Location(
        location_id=row["addressid"],
        structured_address=StructuredAddress(
            number=row["addressnumber"],
            cardinal=row["addresscardinal"] or "",
            street=row["addressstreet"],
            suffix=row["addresssuffix"] or "",
        ),
        latitude=row["latitude"],
        longitude=row["longitude"],
        external_place_id=row.get("placeid"),
        updated_at=row.get("updatedat"),
    )


# ============================================================
# 🗄️ Cache PostgreSQL (tabela addresses)
# ============================================================
class PostgresAddressCache(AddressCache):
    """
    Cache persistente sobre a tabela `addresses`.
    Upsert atômico via UNIQUE (number, cardinal, street, suffix) +
    ON CONFLICT: o primeiro a gravar define o addressid, os seguintes
    só atualizam coordenadas.
    """

    def __init__(self, pool=None, maxconn: int = 10):
        self._pool = pool
        self._maxconn = maxconn

    @property
    def pool(self):
        # lazy: importar o módulo não abre conexão
        if self._pool is None:
            self._pool = create_pool(maxconn=self._maxconn)
        return self._pool

    def ensure_schema(self):
        with get_connection_context() as conn:
            with conn.cursor() as cur:
                cur.execute(SQL_SCHEMA)
        logger.info("🧱 Tabela addresses verificada.")

    def close(self):
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None

    # ============================================================
    # 🔍 Lookup exato
    # ============================================================
    @retry_on_failure()
    def lookup(self, structured_address: StructuredAddress) -> Optional[Location]:
        conn = self.pool.getconn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(SQL_LOOKUP, structured_address.as_key())
                row = cur.fetchone()
            conn.commit()
            return _row_to_location(row) if row else None
        except Exception:
            conn.rollback()
            raise
        finally:
            self.pool.putconn(conn)

    # ============================================================
    # 💾 Upsert idempotente
    # ============================================================
    @retry_on_failure()
    def upsert(
        self,
        structured_address: StructuredAddress,
        latitude: float,
        longitude: float,
        external_place_id: Optional[str] = None,
    ) -> Location:
        conn = self.pool.getconn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    SQL_UPSERT,
                    (*structured_address.as_key(), latitude, longitude, external_place_id),
                )
                row = cur.fetchone()
            conn.commit()
        except Exception as e:
            conn.rollback()
            logger.error(
                f"[CACHE_DB][UPSERT_ERRO] endereco='{structured_address.to_display()}': {e}"
            )
            raise
        finally:
            self.pool.putconn(conn)

        logger.debug(
            f"[CACHE_DB][UPSERT] id={row['addressid']} | "
            f"endereco='{structured_address.to_display()}' | "
            f"lat={latitude} lon={longitude}"
        )
        return _row_to_location(row)

    # ============================================================
    # 🩹 Backfill: linhas sem coordenada
    # ============================================================
    @retry_on_failure()
    def list_missing_coordinates(self, limit: Optional[int] = None) -> List[Tuple[int, StructuredAddress]]:
        sql = SQL_PENDENTES + (" LIMIT %s;" if limit else ";")
        conn = self.pool.getconn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(sql, (limit,) if limit else None)
                rows = cur.fetchall()
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.pool.putconn(conn)

        return [
            (
                row["addressid"],
                StructuredAddress(
                    number=row["addressnumber"],
                    cardinal=row["addresscardinal"] or "",
                    street=row["addressstreet"],
                    suffix=row["addresssuffix"] or "",
                ),
            )
            for row in rows
        ]

    @retry_on_failure()
    def update_coordinates(
        self,
        location_id: int,
        latitude: float,
        longitude: float,
        external_place_id: Optional[str] = None,
    ) -> bool:
        conn = self.pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    SQL_ATUALIZA_COORDENADAS,
                    (latitude, longitude, external_place_id, location_id),
                )
                atualizadas = cur.rowcount
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.pool.putconn(conn)

        logger.debug(f"[CACHE_DB][BACKFILL] id={location_id} lat={latitude} lon={longitude}")
        return atualizadas > 0

    @retry_on_failure()
    def coverage_stats(self) -> dict:
        conn = self.pool.getconn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(SQL_COBERTURA)
                row = cur.fetchone()
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.pool.putconn(conn)

        total = int(row["total"] or 0)
        com = int(row["com_coordenadas"] or 0)
        return {
            "total": total,
            "com_coordenadas": com,
            "sem_coordenadas": total - com,
            "cobertura_pct": round(com / total * 100, 1) if total else 0.0,
        }
