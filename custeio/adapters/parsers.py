"""
Utilidades de parsing para quantidades, valores e datas.

Entradas vêm da linha de comando e de planilhas de compras, em formatos
como "2,5 kg", "1.234,50" ou "05/01/2024". Estas funções convertem esses
textos nos tipos usados pelo domínio.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Optional, Tuple

from custeio.domain.errors import ValidationError

_NUM_RE = re.compile(r"[-+]?\d+(?:[.,]\d+)*")
_FORMATOS_DATA = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d")


def parse_numero(txt: Any) -> Optional[float]:
    """Converte texto numérico com vírgula ou ponto decimal.

    Exemplos:
        "2,5"      → 2.5
        "1.234,50" → 1234.5
        "1,234.50" → 1234.5
        ""         → None
    """
    if txt is None:
        return None
    if isinstance(txt, (int, float)):
        return float(txt)
    s = str(txt).strip().replace(" ", "")
    if not s:
        return None
    if "," in s and "." in s:
        # o separador que aparece por último é o decimal
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    else:
        s = s.replace(",", ".")
    try:
        return float(s)
    except ValueError:
        return None


def parse_quantidade_raw(txt: Any) -> Tuple[Optional[float], Optional[str], Optional[str]]:
    """Interpreta uma quantidade com unidade.

    O padrão é "<valor> <unidade> - <descrição>", com descrição opcional.

    Exemplos:
        "2,5 kg"              → (2.5, "KG", None)
        "10 un - Unidades"    → (10.0, "UN", "Unidades")
        "500g"                → (500.0, "G", None)

    Returns:
        (numero, unidade, descricao); o que não puder ser determinado vem None.
    """
    if txt is None:
        return None, None, None
    s = str(txt).strip()
    if not s:
        return None, None, None
    head, desc = (s.split(" - ", 1) + [""])[:2]
    head = head.strip()
    desc = desc.strip() or None
    m = _NUM_RE.match(head)
    if not m:
        return None, None, desc
    num = parse_numero(m.group(0))
    unidade = head[m.end():].strip().upper() or None
    return num, unidade, desc


def normalizar_data(val: Any, padrao_hoje: bool = True) -> Optional[str]:
    """Converte uma data (str, date, datetime, Timestamp) para ISO YYYY-MM-DD.

    ``None`` ou texto vazio devolvem a data de hoje (ou None, se
    ``padrao_hoje=False``). Texto que não é data gera ValidationError.
    """
    if val is None or (isinstance(val, str) and not val.strip()):
        return date.today().isoformat() if padrao_hoje else None
    if isinstance(val, datetime):  # inclui pandas.Timestamp
        return val.date().isoformat()
    if isinstance(val, date):
        return val.isoformat()
    s = str(val).strip()[:10] if re.match(r"^\d{4}-\d{2}-\d{2}", str(val).strip()) else str(val).strip()
    for fmt in _FORMATOS_DATA:
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue
    raise ValidationError(f"data inválida: {val!r}")
