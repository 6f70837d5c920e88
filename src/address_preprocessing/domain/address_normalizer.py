# ============================================================
# 📦 src/address_preprocessing/domain/address_normalizer.py
# ============================================================

import os
import re
from typing import Optional, Union

from address_preprocessing.domain.errors import NOT_PARSEABLE, _NotParseable
from address_preprocessing.entities.address_entity import StructuredAddress


SUFIXOS = ("AVE", "ST", "RD", "BLVD", "DR", "LN", "CT", "PL", "WAY", "CIR", "PKWY")

_SUFIXO = "|".join(SUFIXOS)

# ordem importa: do mais específico para o mais solto
_PADROES = (
    # "5303 S WASHTENAW AVE"
    re.compile(rf"^(?P<number>\d+)\s+(?P<cardinal>[NSEW])\s+(?P<street>.+?)\s+(?P<suffix>{_SUFIXO})$", re.I),
    # "5303 WASHTENAW AVE"
    re.compile(rf"^(?P<number>\d+)\s+(?P<street>.+?)\s+(?P<suffix>{_SUFIXO})$", re.I),
    # "3238 S PULASKI"
    re.compile(r"^(?P<number>\d+)\s+(?P<cardinal>[NSEW])\s+(?P<street>.+)$", re.I),
    # "3238 PULASKI"
    re.compile(r"^(?P<number>\d+)\s+(?P<street>.+)$", re.I),
)

LOCALIDADE_PADRAO = "Chicago, Illinois"


def localidade_padrao() -> str:
    # lido a cada chamada: o .env é carregado pela CLI depois do import
    return os.getenv("GEOCODE_DEFAULT_LOCALITY", LOCALIDADE_PADRAO)


# ============================================================
# 🔤 Utils internos
# ============================================================

def _limpeza_basica(s: str) -> str:
    return re.sub(r"\s+", " ", s).strip()


def _parte_logradouro(endereco: str) -> str:
    # tudo depois da primeira vírgula é cidade/estado
    return _limpeza_basica(endereco.split(",")[0])


# ============================================================
# 🧱 NORMALIZAÇÃO ESTRUTURADA (CHAVE DE CACHE)
# ============================================================

def normalize(raw: Optional[str]) -> Union[StructuredAddress, _NotParseable]:
    """
    Converte um endereço livre em StructuredAddress.

    Tenta os quatro padrões em ordem; o primeiro que casar vence.
    Retorna NOT_PARSEABLE (falsy) quando nada casa, nunca levanta exceção.
    """
    if not raw or not raw.strip():
        return NOT_PARSEABLE

    parte = _parte_logradouro(raw)

    for padrao in _PADROES:
        m = padrao.match(parte)
        if not m:
            continue

        grupos = m.groupdict()
        return StructuredAddress(
            number=grupos["number"],
            cardinal=grupos.get("cardinal") or "",
            street=grupos["street"],
            suffix=grupos.get("suffix") or "",
        )

    return NOT_PARSEABLE


# ============================================================
# 🧭 PARA GEOCODIFICAÇÃO
# ============================================================

def normalize_for_geocoding(raw: Optional[str], localidade: Optional[str] = None) -> str:
    """Mantém o texto legível; acrescenta cidade/estado quando ausentes."""
    if not raw:
        return ""

    s = _limpeza_basica(raw)
    s = re.sub(r"\s*,\s*", ", ", s).strip(", ")

    localidade = localidade_padrao() if localidade is None else localidade
    if "," not in s and localidade:
        s = f"{s}, {localidade}"

    return s
