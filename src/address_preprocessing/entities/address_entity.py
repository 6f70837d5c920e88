# ============================================================
# 📦 src/address_preprocessing/entities/address_entity.py
# ============================================================

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple


CARDINAIS = ("N", "S", "E", "W")


# ============================================================
# 🧱 Endereço estruturado (chave de deduplicação)
# ============================================================
@dataclass(frozen=True)
class StructuredAddress:
    """
    Endereço estruturado: (número, cardinal, rua, sufixo).
    Duas strings brutas com o mesmo endereço estruturado são o mesmo local
    físico. Cardinal/sufixo ausentes são sempre "" (nunca None).
    """

    number: str
    cardinal: str = ""
    street: str = ""
    suffix: str = ""

    def __post_init__(self):
        # frozen: normaliza via object.__setattr__
        for campo in ("number", "cardinal", "street", "suffix"):
            valor = getattr(self, campo)
            object.__setattr__(self, campo, (valor or "").strip().upper())

        if self.cardinal and self.cardinal not in CARDINAIS:
            raise ValueError(f"❌ cardinal inválido: {self.cardinal}")

    def as_key(self) -> Tuple[str, str, str, str]:
        return (self.number, self.cardinal, self.street, self.suffix)

    def to_display(self) -> str:
        return " ".join(p for p in self.as_key() if p)


# ============================================================
# 📍 Location (endereço com coordenadas)
# ============================================================
@dataclass(frozen=True)
class Location:
    """
    Um endereço físico com coordenadas resolvidas.

    `addresses` guarda as strings brutas da execução atual que resolveram
    para este local (escopo da execução, nunca persistido).
    """

    location_id: int
    structured_address: StructuredAddress
    latitude: float
    longitude: float
    external_place_id: Optional[str] = None
    updated_at: Optional[datetime] = None
    addresses: Tuple[str, ...] = field(default=(), compare=False)

    def __post_init__(self):
        # coordenadas podem vir como Decimal/str do banco
        object.__setattr__(self, "latitude", float(self.latitude))
        object.__setattr__(self, "longitude", float(self.longitude))

    @property
    def coords(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    def to_dict(self) -> dict:
        return {
            "location_id": self.location_id,
            "address": self.structured_address.to_display(),
            "number": self.structured_address.number,
            "cardinal": self.structured_address.cardinal,
            "street": self.structured_address.street,
            "suffix": self.structured_address.suffix,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "external_place_id": self.external_place_id,
            "raw_addresses": list(self.addresses),
        }


# ============================================================
# 🌍 Resultado do geocoding
# ============================================================
@dataclass(frozen=True)
class GeocodeResult:
    latitude: float
    longitude: float
    external_place_id: Optional[str] = None
    formatted_address: Optional[str] = None


@dataclass(frozen=True)
class GeocodeFailure:
    """Falha de geocoding não fatal (erro do provedor, timeout, sem resultado)."""

    address: str
    reason: str

    def __bool__(self):
        return False
