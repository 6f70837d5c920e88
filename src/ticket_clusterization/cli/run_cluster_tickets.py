# ============================================================
# 📦 src/ticket_clusterization/cli/run_cluster_tickets.py
# ============================================================

import argparse
import json
import os
import sys
import uuid

from dotenv import load_dotenv
from loguru import logger

from address_preprocessing.domain.geocoding_client import GeocodingClient
from address_preprocessing.infrastructure.address_cache import InMemoryAddressCache
from address_preprocessing.infrastructure.postgres_address_cache import PostgresAddressCache
from database.db_connection import test_db_connection
from ticket_clusterization.application.cluster_tickets_use_case import ClusterTicketsUseCase
from ticket_clusterization.config.settings import ClusteringOptions
from ticket_clusterization.domain.errors import ClusteringError, InvalidConfiguration
from ticket_clusterization.domain.proximity_clusterer import validar_parametros
from ticket_clusterization.infrastructure.ticket_file_reader import (
    carregar_tickets,
    salvar_nao_atribuidos,
)
from ticket_clusterization.logs.logging_config import setup_logging


# ============================================================
# 🔵 Eventos JSON (stdout)
# ============================================================
def emit_progress(pct, step):
    """Evento de progresso consumido por quem chama a CLI."""
    obj = {"event": "progress", "pct": int(pct), "step": str(step)}
    print(json.dumps(obj, ensure_ascii=False))
    sys.stdout.flush()


def emit_final(obj):
    print(json.dumps(obj, ensure_ascii=False, default=str))
    sys.stdout.flush()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Clusterização de tickets por proximidade de endereço"
    )
    parser.add_argument("--file", required=True, help="CSV de tickets")
    parser.add_argument("--id-column", default="id")
    parser.add_argument("--address-column", default="address")
    parser.add_argument("--lat-column", default=None, help="tickets já com coordenadas (sem geocoding)")
    parser.add_argument("--lng-column", default=None)

    # sobrescrevem o .env / ambiente
    parser.add_argument("--max-distance", type=float, default=None, help="metros")
    parser.add_argument("--max-size", type=int, default=None)
    parser.add_argument("--min-locations", type=int, default=None)
    parser.add_argument("--workers", type=int, default=None)

    parser.add_argument("--cache", choices=["memory", "postgres"], default="postgres")
    parser.add_argument("--output", default=None, help="JSON com os clusters")
    return parser


# ============================================================
# 🚀 Main
# ============================================================
def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    load_dotenv()
    run_id = str(uuid.uuid4())
    setup_logging(run_id)

    input_path = (args.file or "").strip()
    logger.info(f"🚀 Iniciando clusterização | run_id={run_id} | arquivo={input_path}")

    emit_progress(1, "Verificando arquivo")
    if not input_path or not os.path.exists(input_path):
        emit_final({"status": "error", "erro": f"Arquivo não encontrado: {input_path}", "run_id": run_id})
        return 1

    try:
        options = ClusteringOptions.from_env().with_overrides(
            max_distance_meters=args.max_distance,
            max_cluster_size=args.max_size,
            min_locations_per_cluster=args.min_locations,
            geocode_max_workers=args.workers,
        )
        validar_parametros(options.max_distance_meters, options.max_cluster_size)
    except InvalidConfiguration as e:
        emit_final({"status": "error", "erro": str(e), "run_id": run_id})
        return 1

    com_coordenadas = bool(args.lat_column or args.lng_column)
    if com_coordenadas and not (args.lat_column and args.lng_column):
        emit_final({
            "status": "error",
            "erro": "--lat-column e --lng-column devem ser informados juntos",
            "run_id": run_id,
        })
        return 1

    emit_progress(5, "Lendo tickets")
    try:
        tickets = carregar_tickets(
            input_path,
            args.id_column,
            args.address_column,
            lat_column=args.lat_column,
            lng_column=args.lng_column,
        )
    except (ValueError, OSError) as e:
        emit_final({"status": "error", "erro": f"Falha ao ler CSV: {e}", "run_id": run_id})
        return 1

    emit_progress(10, "Inicializando cache de endereços")
    if args.cache == "postgres" and not com_coordenadas:
        if not test_db_connection():
            emit_final({"status": "error", "erro": "Banco indisponível", "run_id": run_id})
            return 1
        cache = PostgresAddressCache()
        cache.ensure_schema()
    else:
        cache = InMemoryAddressCache()

    emit_progress(20, "Resolvendo endereços e clusterizando")
    use_case = ClusterTicketsUseCase(cache=cache, geocoder=GeocodingClient(), options=options)

    try:
        if com_coordenadas:
            result = use_case.execute_with_coordinates(tickets)
        else:
            result = use_case.execute(tickets)
    except ClusteringError as e:
        logger.error(f"💥 {e}")
        emit_final({
            "status": "error",
            "erro": str(e),
            "failed_addresses": getattr(e, "failed", []),
            "run_id": run_id,
        })
        return 1
    finally:
        if isinstance(cache, PostgresAddressCache):
            cache.close()

    emit_progress(90, "Salvando saída")
    arquivo_nao_atribuidos = salvar_nao_atribuidos(
        result.unassigned_tickets,
        os.path.dirname(os.path.abspath(input_path)),
        run_id,
        result.failures,
    )

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, ensure_ascii=False, indent=2, default=str)
        logger.info(f"💾 Clusters salvos em {args.output}")

    emit_progress(99, "Finalizando execução")
    emit_final({
        "status": "partial" if result.is_partial else "done",
        "run_id": run_id,
        "arquivo": os.path.basename(input_path),
        "params": options.snapshot(),
        **result.stats,
        "arquivo_nao_atribuidos": arquivo_nao_atribuidos,
        "arquivo_saida": args.output,
    })
    return 0


if __name__ == "__main__":
    sys.exit(main())
