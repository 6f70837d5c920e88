# ============================================================
# 📦 src/address_preprocessing/infrastructure/address_cache.py
# ============================================================

import threading
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from loguru import logger

from address_preprocessing.entities.address_entity import Location, StructuredAddress


class AddressCache:
    """
    Contrato do cache de endereços:
      - lookup: busca exata pelos quatro campos (cardinal/sufixo "" nunca NULL)
      - upsert: idempotente; em conflito atualiza coordenadas/place id,
        renova atualizado_em e MANTÉM a identidade (location_id) original
    """

    def lookup(self, structured_address: StructuredAddress) -> Optional[Location]:
        raise NotImplementedError

    def upsert(
        self,
        structured_address: StructuredAddress,
        latitude: float,
        longitude: float,
        external_place_id: Optional[str] = None,
    ) -> Location:
        raise NotImplementedError


# ============================================================
# 🧠 Implementação em memória (testes / CLI sem banco)
# ============================================================
class InMemoryAddressCache(AddressCache):
    """Thread-safe: upsert atômico por chave sob um único lock."""

    def __init__(self):
        self._itens: Dict[Tuple[str, str, str, str], Location] = {}
        self._proximo_id = 1
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._itens)

    def lookup(self, structured_address: StructuredAddress) -> Optional[Location]:
        with self._lock:
            return self._itens.get(structured_address.as_key())

    def upsert(
        self,
        structured_address: StructuredAddress,
        latitude: float,
        longitude: float,
        external_place_id: Optional[str] = None,
    ) -> Location:
        chave = structured_address.as_key()

        with self._lock:
            existente = self._itens.get(chave)
            if existente is None:
                location_id = self._proximo_id
                self._proximo_id += 1
            else:
                location_id = existente.location_id

            location = Location(
                location_id=location_id,
                structured_address=structured_address,
                latitude=latitude,
                longitude=longitude,
                external_place_id=external_place_id,
                updated_at=datetime.now(timezone.utc),
            )
            self._itens[chave] = location

        logger.debug(
            f"[CACHE][UPSERT] id={location_id} | "
            f"endereco='{structured_address.to_display()}' | "
            f"lat={latitude} lon={longitude}"
        )
        return location
