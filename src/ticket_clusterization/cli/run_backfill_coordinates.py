# ============================================================
# 📦 src/ticket_clusterization/cli/run_backfill_coordinates.py
# ============================================================

import argparse
import sys
import uuid

from dotenv import load_dotenv
from loguru import logger

from address_preprocessing.application.backfill_coordinates_use_case import (
    BackfillCoordinatesUseCase,
)
from address_preprocessing.domain.geocoding_client import GeocodingClient
from address_preprocessing.infrastructure.postgres_address_cache import PostgresAddressCache
from database.db_connection import test_db_connection
from ticket_clusterization.cli.run_cluster_tickets import emit_final, emit_progress
from ticket_clusterization.logs.logging_config import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Re-geocodifica endereços do cache sem coordenadas"
    )
    parser.add_argument("--limit", type=int, default=None, help="máximo de endereços nesta execução")
    parser.add_argument("--batch-size", type=int, default=10)
    parser.add_argument("--pause", type=float, default=1.0, help="segundos entre lotes")
    parser.add_argument("--workers", type=int, default=None)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    load_dotenv()
    run_id = str(uuid.uuid4())
    setup_logging(run_id)

    logger.info(f"🚀 Iniciando backfill de coordenadas | run_id={run_id}")
    emit_progress(1, "Conectando ao banco")

    if not test_db_connection():
        emit_final({"status": "error", "erro": "Banco indisponível", "run_id": run_id})
        return 1

    cache = PostgresAddressCache()
    try:
        cache.ensure_schema()
        use_case = BackfillCoordinatesUseCase(
            cache=cache,
            geocoder=GeocodingClient(),
            max_workers=args.workers,
            batch_size=args.batch_size,
            pause_seconds=args.pause,
        )

        def progresso(lote, total):
            emit_progress(5 + 90 * lote / total, f"Lote {lote}/{total}")

        result = use_case.execute(limit=args.limit, progress=progresso)
    except ValueError as e:
        emit_final({"status": "error", "erro": str(e), "run_id": run_id})
        return 1
    finally:
        cache.close()

    emit_final({
        "status": "partial" if result.failed else "done",
        "run_id": run_id,
        **result.to_dict(),
    })
    return 0


if __name__ == "__main__":
    sys.exit(main())
