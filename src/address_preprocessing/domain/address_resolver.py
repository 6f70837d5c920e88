# ============================================================
# 📦 src/address_preprocessing/domain/address_resolver.py
# ============================================================

import dataclasses
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from loguru import logger

from address_preprocessing.domain.address_normalizer import normalize, normalize_for_geocoding
from address_preprocessing.domain.errors import NoLocationsResolved
from address_preprocessing.domain.geocoding_client import GeocodingClient
from address_preprocessing.entities.address_entity import Location, StructuredAddress
from address_preprocessing.infrastructure.address_cache import AddressCache


MAX_WORKERS_LIMITE = 8


@dataclass
class ResolutionResult:
    resolved: List[Location] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)


class AddressResolver:
    """
    Endereços brutos → Locations.

    Ordem por endereço estruturado:
      1. Normalização (não parseável → falha)
      2. Cache
      3. GeocodingClient + upsert no cache
      4. Falha

    Cada endereço estruturado é uma unidade de trabalho: duas grafias do
    mesmo endereço nunca geram dois geocodings no mesmo lote.
    """

    def __init__(
        self,
        cache: AddressCache,
        geocoder: GeocodingClient,
        max_workers: Optional[int] = None,
        localidade: Optional[str] = None,
    ):
        self.cache = cache
        self.geocoder = geocoder
        self.localidade = localidade

        if max_workers is None:
            max_workers = int(os.getenv("GEOCODE_MAX_WORKERS", "6"))
        self.max_workers = max(1, min(int(max_workers), MAX_WORKERS_LIMITE))

        self.stats = {"cache": 0, "geocoded": 0, "not_parseable": 0, "falha": 0, "total": 0}
        self.stats_lock = threading.Lock()

    def _contar(self, chave: str, n: int = 1):
        with self.stats_lock:
            self.stats[chave] += n

    # ============================================================
    # 🧩 Unidade de trabalho (um endereço estruturado)
    # ============================================================
    def _resolver_unidade(self, structured: StructuredAddress, raws: List[str]):
        """Retorna (Location, None) ou (None, motivo)."""
        cached = self.cache.lookup(structured)
        if cached is not None:
            logger.debug(
                f"[RESOLVER][CACHE][HIT] id={cached.location_id} | {structured.to_display()}"
            )
            self._contar("cache")
            return cached, None

        consulta = normalize_for_geocoding(raws[0], self.localidade)
        resultado = self.geocoder.geocode(consulta)

        if not resultado:
            logger.warning(
                f"[RESOLVER][GEOCODE][FALHA] motivo={resultado.reason} | {consulta}"
            )
            return None, resultado.reason

        location = self.cache.upsert(
            structured,
            resultado.latitude,
            resultado.longitude,
            resultado.external_place_id,
        )
        self._contar("geocoded")
        return location, None

    # ============================================================
    # ⚡ Execução em lote
    # ============================================================
    def resolve(self, raw_addresses: Iterable[str]) -> ResolutionResult:
        # dedup preservando a ordem de entrada
        entradas = list(dict.fromkeys(raw_addresses))

        logger.info(f"[RESOLVER][INICIO] {len(entradas)} endereços únicos")
        with self.stats_lock:
            self.stats["total"] += len(entradas)

        falhas: Dict[str, str] = {}
        unidades: Dict[StructuredAddress, List[str]] = {}

        for raw in entradas:
            structured = normalize(raw)
            if not structured:
                logger.warning(f"[RESOLVER][NAO_PARSEAVEL] '{raw}'")
                self._contar("not_parseable")
                falhas[raw] = "not_parseable"
                continue
            unidades.setdefault(structured, []).append(raw)

        por_unidade: Dict[StructuredAddress, Location] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futuros = {
                executor.submit(self._resolver_unidade, structured, raws): structured
                for structured, raws in unidades.items()
            }

            for futuro in as_completed(futuros):
                structured = futuros[futuro]
                try:
                    location, motivo = futuro.result()
                except Exception as e:
                    # opt(): a mensagem já formatada pode conter chaves
                    logger.opt(exception=e).error(
                        f"[RESOLVER][ERRO] {structured.to_display()}: {e}"
                    )
                    location, motivo = None, "error"

                if location is None:
                    for raw in unidades[structured]:
                        falhas[raw] = motivo
                    continue

                por_unidade[structured] = dataclasses.replace(
                    location, addresses=tuple(unidades[structured])
                )

        # saída determinística: ordem de primeira aparição na entrada
        result = ResolutionResult()
        for raw in entradas:
            if raw in falhas:
                result.failed.append(raw)
                result.failures[raw] = falhas[raw]

        for structured in unidades:
            if structured in por_unidade:
                result.resolved.append(por_unidade[structured])

        self._contar("falha", len(result.failed))

        logger.info(
            f"[RESOLVER][FIM] resolvidos={len(result.resolved)} locais | "
            f"falhas={len(result.failed)}/{len(entradas)} endereços"
        )

        if not result.resolved:
            raise NoLocationsResolved(result.failed)

        return result

    # ============================================================
    # 📊 Resumo final de logs
    # ============================================================
    def summary(self):
        total = self.stats.get("total", 0)

        logger.info("📊 Resumo de resolução de endereços:")
        for origem, count in self.stats.items():
            if origem == "total":
                continue
            pct = (count / total * 100) if total else 0
            logger.info(f"   {origem:<14}: {count:>6} ({pct:5.1f}%)")

        sucesso = total - self.stats.get("falha", 0)
        taxa = (sucesso / total * 100) if total else 0
        logger.info(f"✅ Sucesso: {sucesso}/{total} ({taxa:.1f}%)")
