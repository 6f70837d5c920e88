# ticket_clustering/src/ticket_clusterization/infrastructure/ticket_file_reader.py

import os
from typing import List, Optional, Sequence

import pandas as pd
from loguru import logger

from ticket_clusterization.domain.entities import RawTicket


def detectar_separador(path: str) -> str:
    """Detecta automaticamente o separador do CSV."""
    with open(path, "r", encoding="utf-8-sig") as f:
        linha = f.readline()
        return ";" if ";" in linha else ","


def carregar_tickets(
    path: str,
    id_column: str = "id",
    address_column: str = "address",
    sep: Optional[str] = None,
    lat_column: Optional[str] = None,
    lng_column: Optional[str] = None,
) -> List[RawTicket]:
    """Lê tickets de um CSV; colunas extras seguem em `fields`."""
    sep = sep or detectar_separador(path)
    df = pd.read_csv(path, sep=sep, dtype=str, encoding="utf-8-sig", keep_default_na=False)

    obrigatorias = [c for c in (id_column, address_column, lat_column, lng_column) if c]
    faltando = [c for c in obrigatorias if c not in df.columns]
    if faltando:
        raise ValueError(f"Colunas obrigatórias ausentes no CSV: {faltando}")

    extras = [c for c in df.columns if c not in obrigatorias]
    tickets = [
        RawTicket(
            id=row[id_column],
            address=row[address_column],
            fields={c: row[c] for c in extras},
            latitude=row[lat_column] if lat_column else None,
            longitude=row[lng_column] if lng_column else None,
        )
        for row in df.to_dict(orient="records")
    ]

    logger.info(f"📄 {len(tickets)} tickets carregados de {path} (sep='{sep}')")
    return tickets


def salvar_nao_atribuidos(
    tickets: Sequence[RawTicket],
    pasta_base: str,
    run_id: str,
    failures: Optional[dict] = None,
) -> Optional[str]:
    """Salva tickets sem cluster em CSV e retorna o caminho."""
    if not tickets:
        return None

    failures = failures or {}
    df = pd.DataFrame(
        [{**t.to_dict(), "motivo": failures.get(t.address, "")} for t in tickets]
    )

    pasta = os.path.join(pasta_base, "unassigned")
    os.makedirs(pasta, exist_ok=True)
    caminho = os.path.join(pasta, f"unassigned_{run_id}.csv")

    df.to_csv(caminho, index=False, sep=";", encoding="utf-8-sig")
    logger.warning(f"⚠️ {len(df)} tickets sem cluster salvos em: {caminho}")
    return caminho
