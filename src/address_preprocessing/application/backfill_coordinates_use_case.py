# ============================================================
# 📦 src/address_preprocessing/application/backfill_coordinates_use_case.py
# ============================================================

import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from loguru import logger

from address_preprocessing.domain.address_normalizer import normalize_for_geocoding
from address_preprocessing.domain.address_resolver import MAX_WORKERS_LIMITE
from address_preprocessing.domain.geocoding_client import GeocodingClient
from address_preprocessing.entities.address_entity import StructuredAddress
from address_preprocessing.infrastructure.postgres_address_cache import PostgresAddressCache


@dataclass
class BackfillResult:
    total: int = 0
    success: int = 0
    errors: List[Dict] = field(default_factory=list)
    coverage: Dict = field(default_factory=dict)

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def success_rate(self) -> float:
        return round(self.success / self.total * 100, 1) if self.total else 0.0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "success_rate": self.success_rate,
            "errors": self.errors,
            "coverage": self.coverage,
        }


class BackfillCoordinatesUseCase:
    """
    Re-geocodifica linhas do cache sem coordenada (NULL ou 0).

    Lotes de `batch_size` endereços, cada lote num pool limitado, com pausa
    entre lotes para respeitar a cota do provedor. Falha de um endereço
    nunca interrompe o lote.
    """

    def __init__(
        self,
        cache: PostgresAddressCache,
        geocoder: GeocodingClient,
        max_workers: Optional[int] = None,
        batch_size: int = 10,
        pause_seconds: float = 1.0,
        localidade: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size deve ser >= 1, recebido {batch_size}")

        self.cache = cache
        self.geocoder = geocoder
        self.batch_size = batch_size
        self.pause_seconds = pause_seconds
        self.localidade = localidade
        self.sleep = sleep

        if max_workers is None:
            max_workers = int(os.getenv("GEOCODE_MAX_WORKERS", "6"))
        self.max_workers = max(1, min(int(max_workers), MAX_WORKERS_LIMITE, batch_size))

    def _geocodificar_linha(self, location_id: int, structured: StructuredAddress):
        """Retorna None em sucesso ou o motivo da falha."""
        consulta = normalize_for_geocoding(structured.to_display(), self.localidade)
        resultado = self.geocoder.geocode(consulta)
        if not resultado:
            return resultado.reason

        self.cache.update_coordinates(
            location_id,
            resultado.latitude,
            resultado.longitude,
            resultado.external_place_id,
        )
        return None

    def execute(self, limit: Optional[int] = None, progress=None) -> BackfillResult:
        pendentes = self.cache.list_missing_coordinates(limit)
        result = BackfillResult(total=len(pendentes))

        logger.info(f"📍 {len(pendentes)} endereços sem coordenada no cache.")
        if not pendentes:
            result.coverage = self.cache.coverage_stats()
            logger.success("✅ Todos os endereços já possuem coordenadas.")
            return result

        n_lotes = (len(pendentes) + self.batch_size - 1) // self.batch_size

        for n, inicio in enumerate(range(0, len(pendentes), self.batch_size), start=1):
            lote = pendentes[inicio:inicio + self.batch_size]
            logger.info(f"🔄 Lote {n}/{n_lotes} | endereços {inicio + 1}..{inicio + len(lote)}")

            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futuros = {
                    executor.submit(self._geocodificar_linha, location_id, structured): (location_id, structured)
                    for location_id, structured in lote
                }
                for futuro in as_completed(futuros):
                    location_id, structured = futuros[futuro]
                    try:
                        motivo = futuro.result()
                    except Exception as e:
                        logger.opt(exception=e).error(
                            f"[BACKFILL][ERRO] id={location_id} {structured.to_display()}: {e}"
                        )
                        motivo = "error"

                    if motivo is None:
                        result.success += 1
                    else:
                        result.errors.append({
                            "location_id": location_id,
                            "address": structured.to_display(),
                            "reason": motivo,
                        })

            if progress:
                progress(n, n_lotes)

            if n < n_lotes and self.pause_seconds > 0:
                logger.debug(f"⏳ Aguardando {self.pause_seconds}s antes do próximo lote")
                self.sleep(self.pause_seconds)

        # saída estável independente da ordem de conclusão
        result.errors.sort(key=lambda e: e["location_id"])
        result.coverage = self.cache.coverage_stats()
        self._log_resumo(result)
        return result

    @staticmethod
    def _log_resumo(result: BackfillResult):
        logger.info("📊 Resumo do backfill de coordenadas:")
        logger.info(f"   geocodificados : {result.success}")
        logger.info(f"   falhas         : {result.failed}")
        logger.info(f"   taxa de sucesso: {result.success_rate:.1f}%")

        for erro in result.errors[:10]:
            logger.warning(
                f"   id={erro['location_id']} {erro['address']} → {erro['reason']}"
            )
        if result.failed > 10:
            logger.warning(f"   ... e mais {result.failed - 10} falhas")

        cob = result.coverage
        if cob:
            logger.info(
                f"📈 Cobertura do cache: {cob['com_coordenadas']}/{cob['total']} "
                f"({cob['cobertura_pct']:.1f}%)"
            )
