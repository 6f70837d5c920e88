#ticket_clustering/src/database/db_connection.py

import os
import time
from contextlib import contextmanager

import psycopg2
from psycopg2 import DatabaseError, InterfaceError, OperationalError
from psycopg2.pool import ThreadedConnectionPool
from loguru import logger


# =====================================================
# ⚙️ Configuração do banco
# =====================================================
def db_params() -> dict:
    # lido a cada chamada: o .env é carregado pela CLI depois do import
    return {
        "dbname": os.getenv("DB_NAME", os.getenv("POSTGRES_DB", "ticket_clustering_db")),
        "user": os.getenv("DB_USER", os.getenv("POSTGRES_USER", "postgres")),
        "password": os.getenv("DB_PASSWORD", os.getenv("POSTGRES_PASSWORD", "postgres")),
        "host": os.getenv("DB_HOST", os.getenv("POSTGRES_HOST", "localhost")),
        "port": os.getenv("DB_PORT", os.getenv("POSTGRES_PORT", "5432")),
        "connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT", "10")),
        "application_name": os.getenv("DB_APP_NAME", "ticket_clustering"),
    }


# =====================================================
# 🔄 Retentativas automáticas com backoff exponencial
# =====================================================
def get_connection(retries: int = 5, delay: int = 2, backoff: float = 1.5):
    """
    Cria e retorna uma conexão com o PostgreSQL.
    Retenta automaticamente em caso de falha temporária.
    """
    for attempt in range(1, retries + 1):
        try:
            conn = psycopg2.connect(**db_params())
            conn.autocommit = False
            logger.debug(f"✅ Conexão PostgreSQL estabelecida (tentativa {attempt})")
            return conn
        except OperationalError as e:
            wait = delay * (backoff ** (attempt - 1))
            logger.warning(f"⚠️ Erro de conexão (tentativa {attempt}/{retries}): {e}, aguardando {wait:.1f}s")
            time.sleep(wait)

    raise ConnectionError("❌ Falha ao conectar ao banco após múltiplas tentativas.")


# =====================================================
# 🏊 Pool thread-safe (usado pelo cache de endereços)
# =====================================================
def create_pool(minconn: int = 1, maxconn: int = 10) -> ThreadedConnectionPool:
    pool = ThreadedConnectionPool(minconn=minconn, maxconn=maxconn, **db_params())
    logger.info(f"🔌 ThreadedConnectionPool inicializado (max={maxconn}).")
    return pool


# =====================================================
# 🧱 Context Manager seguro (rollback e fechamento)
# =====================================================
@contextmanager
def get_connection_context(retries: int = 3):
    """
    Context manager seguro para uso de conexões PostgreSQL.
    Faz commit no sucesso, rollback em erro e sempre fecha.
    Exemplo:
        with get_connection_context() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
    """
    conn = None
    try:
        conn = get_connection(retries=retries)
        yield conn
        conn.commit()
    except (OperationalError, InterfaceError) as e:
        if conn:
            conn.rollback()
        logger.error(f"💥 Erro operacional na conexão: {e}")
        raise
    except DatabaseError as e:
        if conn:
            conn.rollback()
        logger.error(f"❌ Erro de banco de dados: {e}")
        raise
    except Exception:
        if conn:
            conn.rollback()
        raise
    finally:
        if conn:
            try:
                conn.close()
                logger.debug("🔌 Conexão PostgreSQL fechada com sucesso.")
            except Exception as e:
                logger.warning(f"⚠️ Falha ao fechar conexão: {e}")


# =====================================================
# 🔍 Verificação rápida (saúde do banco)
# =====================================================
def test_db_connection() -> bool:
    """Testa a conexão com o banco; usado pela CLI antes do cache postgres."""
    try:
        with get_connection_context(retries=1) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT NOW();")
                result = cur.fetchone()
                logger.success(f"✅ Banco conectado. Hora atual: {result[0]}")
        return True
    except Exception as e:
        logger.error(f"❌ Falha ao testar conexão com o banco: {e}")
        return False
