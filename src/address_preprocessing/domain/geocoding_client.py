# ============================================================
# 📦 src/address_preprocessing/domain/geocoding_client.py
# ============================================================

import os
import threading
import time
from typing import Optional, Union

import requests
from loguru import logger

from address_preprocessing.domain.utils_geo import coordenada_generica
from address_preprocessing.entities.address_entity import GeocodeFailure, GeocodeResult


GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


class GeocodingClient:
    """
    Cliente do Google Geocoding API.

    Toda falha (timeout, HTTP != 200, status != OK, sem resultado,
    coordenada genérica) vira GeocodeFailure, nunca exceção.
    Sem retentativas: política de retry é de quem chama.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        url: str = GOOGLE_GEOCODE_URL,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("GOOGLE_MAPS_API_KEY")
        self.timeout = timeout if timeout is not None else float(os.getenv("GEOCODE_TIMEOUT", "5"))
        self.session = session or requests.Session()
        self.url = url

        self.stats = {"ok": 0, "miss": 0, "timeout": 0, "erro": 0}
        self.stats_lock = threading.Lock()

    def _contar(self, chave: str):
        with self.stats_lock:
            self.stats[chave] += 1

    # ============================================================
    # 🌍 Busca principal
    # ============================================================
    def geocode(self, address: str) -> Union[GeocodeResult, GeocodeFailure]:
        trace = f"GEO-{int(time.time() * 1000)}"

        if not address or not address.strip():
            self._contar("erro")
            return GeocodeFailure(address=address or "", reason="parametro_vazio")

        if not self.api_key:
            logger.error(f"[{trace}][GOOGLE][SEM_CHAVE] GOOGLE_MAPS_API_KEY não definido")
            self._contar("erro")
            return GeocodeFailure(address=address, reason="missing_api_key")

        logger.debug(f"[{trace}][GOOGLE][REQ] {address}")

        try:
            r = self.session.get(
                self.url,
                params={"address": address, "key": self.api_key},
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.warning(f"[{trace}][GOOGLE][TIMEOUT] {address} ({self.timeout}s)")
            self._contar("timeout")
            return GeocodeFailure(address=address, reason="timeout")
        except requests.RequestException as e:
            logger.warning(f"[{trace}][GOOGLE][ERRO] {address}: {e}")
            self._contar("erro")
            return GeocodeFailure(address=address, reason="request_error")

        if r.status_code != 200:
            logger.warning(f"[{trace}][GOOGLE][HTTP] status={r.status_code} | {address}")
            self._contar("erro")
            return GeocodeFailure(address=address, reason=f"http_{r.status_code}")

        try:
            data = r.json()
        except ValueError:
            logger.warning(f"[{trace}][GOOGLE][JSON_INVALIDO] {address}")
            self._contar("erro")
            return GeocodeFailure(address=address, reason="invalid_response")

        status = data.get("status")
        resultados = data.get("results") or []
        if status != "OK" or not resultados:
            logger.warning(
                f"[{trace}][GOOGLE][MISS] status={status} "
                f"erro={data.get('error_message', '')} | {address}"
            )
            self._contar("miss")
            return GeocodeFailure(address=address, reason=(status or "no_results").lower())

        hit = resultados[0]
        loc = hit["geometry"]["location"]
        lat, lng = float(loc["lat"]), float(loc["lng"])

        if coordenada_generica(lat, lng):
            logger.warning(f"[{trace}][GOOGLE][GENERICA] lat={lat} lon={lng} | {address}")
            self._contar("miss")
            return GeocodeFailure(address=address, reason="generic_location")

        logger.info(f"[{trace}][GOOGLE][OK] lat={lat} lon={lng} | {address}")
        self._contar("ok")

        return GeocodeResult(
            latitude=lat,
            longitude=lng,
            external_place_id=hit.get("place_id"),
            formatted_address=hit.get("formatted_address"),
        )
