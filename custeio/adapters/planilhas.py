# custeio/adapters/planilhas.py
"""
Importação de COMPRAS em lote a partir de XLSX.

Colunas fixas (cabeçalho na primeira linha, sem acento/caixa importando):
    data | ingrediente_id | qtd_compra | unidade | preco_total | nota_fornecedor | rendimento_real

Obrigatórias: ingrediente_id, qtd_compra, preco_total. Não há detecção
de colunas por conteúdo; cabeçalho fora desse conjunto é ignorado.

- load_compras_from_xlsx(path): lê e normaliza (pandas).
- importar_compras(sistema, path): registra cada linha pelo livro de lotes.
  Uma linha com erro não impede as demais; os erros voltam no resultado.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import pandas as pd

from custeio.domain.errors import CusteioError, ValidationError
from custeio.infra.logger import log_file_operation, log_system_event, log_transaction
from .parsers import normalizar_data, parse_numero

COLUNAS = ("data", "ingrediente_id", "qtd_compra", "unidade", "preco_total", "nota_fornecedor", "rendimento_real")
OBRIGATORIAS = ("ingrediente_id", "qtd_compra", "preco_total")


def _slug(s: Any) -> str:
    """Normaliza cabeçalhos: minúsculas, sem acentos, '_' no lugar de não-alfanumérico."""
    if s is None:
        return ""
    s = str(s).strip().lower()
    acentos = dict(zip("áàâãäéèêëíìîïóòôõöúùûüç", "aaaaaeeeeiiiiooooouuuuc"))
    s = "".join(acentos.get(ch, ch) for ch in s)
    return re.sub(r"[^a-z0-9]+", "_", s).strip("_")


def _safe_get(row: pd.Series, key: str) -> Optional[str]:
    """Valor da célula ou None (NA, ausente ou vazio)."""
    if key not in row.index:
        return None
    val = row.get(key)
    if val is None or pd.isna(val):
        return None
    s = str(val).strip()
    return s or None


def load_compras_from_xlsx(path: str) -> List[Dict[str, Any]]:
    """Lê XLSX de COMPRAS e devolve um dict por linha não vazia.

    Chaves: as de ``COLUNAS`` mais ``linha`` (número da linha na planilha).
    Números com vírgula decimal são aceitos; datas viram ISO.
    """
    df = pd.read_excel(path, dtype="string")
    df.columns = [_slug(c) for c in df.columns]
    faltando = [c for c in OBRIGATORIAS if c not in df.columns]
    if faltando:
        raise ValidationError(f"colunas obrigatórias ausentes: {', '.join(faltando)}", entidade=path)

    out: List[Dict[str, Any]] = []
    for idx, row in df.iterrows():
        valores = {c: _safe_get(row, c) for c in COLUNAS}
        if not any(valores.values()):
            continue
        out.append({
            "linha": int(idx) + 2,  # cabeçalho é a linha 1
            "data": valores["data"],
            "ingrediente_id": valores["ingrediente_id"],
            "qtd_compra": parse_numero(valores["qtd_compra"]),
            "unidade": valores["unidade"],
            "preco_total": parse_numero(valores["preco_total"]),
            "nota_fornecedor": valores["nota_fornecedor"],
            "rendimento_real": parse_numero(valores["rendimento_real"]),
        })
    return out


def importar_compras(sistema, path: str) -> Dict[str, Any]:
    """Registra as compras de um XLSX. Retorna contagens, lotes criados e erros."""
    log_system_event("compras_lote_start", {"file_path": path})
    log_file_operation("import", path)

    rows = load_compras_from_xlsx(path)
    lotes: List[str] = []
    erros: List[Dict[str, Any]] = []
    for r in rows:
        try:
            if not r["ingrediente_id"]:
                raise ValidationError("ingrediente_id vazio")
            data = normalizar_data(r["data"])
            res = sistema.registrar_compra(
                r["ingrediente_id"],
                r["qtd_compra"],
                r["preco_total"],
                unidade=r["unidade"],
                data=data,
                nota_fornecedor=r["nota_fornecedor"],
                rendimento_real=r["rendimento_real"],
            )
            lotes.append(res.valor.lote_id)
        except CusteioError as e:
            erros.append({"linha": r["linha"], **e.to_dict()})

    result = {"arquivo": path, "linhas": len(rows), "importadas": len(lotes), "lotes": lotes, "erros": erros}
    log_file_operation("import", path, rows_processed=len(rows), erros=len(erros))
    log_transaction("compras_lote", {"file": path, "rows_count": len(rows)}, result={"importadas": len(lotes)})
    return result
