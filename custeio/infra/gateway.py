# custeio/infra/gateway.py
"""
Store Gateway: leitura/escrita de linhas por nome lógico de tabela.

Contrato:
- read_table(name, filtro=None)   -> List[Dict]  (ordem de inserção)
- append_row(name, row)
- update_row(name, row_key, fields)
- update_rows(name, updates)      -> várias linhas em UMA transação
- write_batch(appends, updates)   -> inserts + updates em UMA transação

Sem regra de negócio. Nomes de tabela e de coluna são validados contra
o registro TABLES antes de qualquer SQL (nunca interpolamos nomes vindos
do chamador sem essa checagem).

Falhas operacionais do SQLite (arquivo travado, disco, etc.) viram
`BackendUnavailableError`; violações de integridade viram `ValidationError`.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from custeio.domain.errors import BackendUnavailableError, ValidationError
from .db import connect
from .logger import log_database_operation

RowKey = Union[Any, Tuple[Any, ...]]


# tabela -> (colunas-chave, todas as colunas)
TABLES: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    "params": (("chave",), ("chave", "valor")),
    "ingredientes": (
        ("id",),
        ("id", "nome", "unidade_estoque", "unidade_compra", "razao_compra_estoque", "estoque_minimo"),
    ),
    "compras": (
        ("lote_id",),
        ("lote_id", "data", "ingrediente_id", "qtd_compra", "unidade", "preco_total",
         "preco_unitario", "qtd_estoque", "custo_unitario", "qtd_restante", "nota_fornecedor"),
    ),
    "menus": (("menu_id",), ("menu_id", "nome", "categoria", "ativo", "preco")),
    "receitas": (("menu_id", "ingrediente_id"), ("menu_id", "ingrediente_id", "qtd_por_porcao")),
    "centros_custo": (("centro_id",), ("centro_id", "nome", "tipo_taxa", "taxa")),
    "plataformas": (("nome",), ("nome", "comissao_pct")),
    "producoes": (
        ("producao_id",),
        ("producao_id", "data", "menu_id", "qtd_planejada", "status", "qtd_real", "peso_kg",
         "horas", "custo_receita", "custo_embalagem", "custo_mao_obra", "custo_overhead",
         "custo_total", "custo_por_porcao", "comprometida", "nota"),
    ),
    "vendas": (
        ("venda_id",),
        ("venda_id", "data", "plataforma", "menu_id", "qtd", "preco_unitario",
         "liquido_unitario", "cogs", "lucro"),
    ),
    "cogs": (
        ("id",),
        ("id", "origem", "origem_id", "data", "ingrediente_id", "lote_id", "qtd",
         "custo_unitario", "custo_total"),
    ),
    "desperdicios": (
        ("desperdicio_id",),
        ("desperdicio_id", "data", "ingrediente_id", "qtd", "custo", "nota"),
    ),
    "mao_de_obra": (
        ("registro_id",),
        ("registro_id", "data", "centro_id", "horas", "taxa", "valor", "nota"),
    ),
}

Append = Tuple[str, Mapping[str, Any]]
Update = Tuple[str, RowKey, Mapping[str, Any]]


def _schema(name: str) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    try:
        return TABLES[name]
    except KeyError:
        raise ValidationError(f"tabela desconhecida: {name}", entidade=name) from None


def _check_columns(name: str, cols: Iterable[str]) -> List[str]:
    _keys, allowed = _schema(name)
    cols = list(cols)
    unknown = [c for c in cols if c not in allowed]
    if unknown:
        raise ValidationError(f"colunas desconhecidas em {name}: {', '.join(unknown)}", entidade=name)
    return cols


def _key_values(name: str, row_key: RowKey) -> Tuple[Tuple[str, ...], Tuple[Any, ...]]:
    keys, _ = _schema(name)
    values = row_key if isinstance(row_key, tuple) else (row_key,)
    if len(values) != len(keys):
        raise ValidationError(f"chave inválida para {name}: {row_key!r}", entidade=name)
    return keys, tuple(values)


class SqliteGateway:
    """Gateway sobre um arquivo SQLite (uma tabela por entidade)."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    @contextmanager
    def _conn(self, operacao: str) -> Iterator[sqlite3.Connection]:
        try:
            with connect(self.db_path) as c:
                yield c
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"violação de integridade: {e}", entidade=operacao) from e
        except (sqlite3.OperationalError, sqlite3.DatabaseError) as e:
            raise BackendUnavailableError(f"{operacao}: {e}", entidade=self.db_path) from e

    # ---------- leitura ----------

    def read_table(self, name: str, filtro: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        _, cols = _schema(name)
        sql = f"SELECT {', '.join(cols)} FROM {name}"
        params: Sequence[Any] = ()
        if filtro:
            fcols = _check_columns(name, filtro.keys())
            sql += " WHERE " + " AND ".join(f"{c} = ?" for c in fcols)
            params = [filtro[c] for c in fcols]
        sql += " ORDER BY rowid"
        with self._conn(f"read:{name}") as c:
            rows = [dict(r) for r in c.execute(sql, params).fetchall()]
        log_database_operation(name, "READ", len(rows), filtro=dict(filtro or {}))
        return rows

    # ---------- escrita ----------

    @staticmethod
    def _append(c: sqlite3.Connection, name: str, row: Mapping[str, Any]) -> None:
        cols = _check_columns(name, row.keys())
        if not cols:
            raise ValidationError(f"linha vazia para {name}", entidade=name)
        c.execute(
            f"INSERT INTO {name} ({', '.join(cols)}) VALUES ({', '.join(':' + k for k in cols)})",
            dict(row),
        )

    @staticmethod
    def _update(c: sqlite3.Connection, name: str, row_key: RowKey, fields: Mapping[str, Any]) -> None:
        cols = _check_columns(name, fields.keys())
        if not cols:
            return
        keys, values = _key_values(name, row_key)
        sets = ", ".join(f"{k} = ?" for k in cols)
        where = " AND ".join(f"{k} = ?" for k in keys)
        cur = c.execute(
            f"UPDATE {name} SET {sets} WHERE {where}",
            [fields[k] for k in cols] + list(values),
        )
        if cur.rowcount != 1:
            raise ValidationError(f"linha não encontrada em {name}: {row_key!r}", entidade=str(row_key))

    def append_row(self, name: str, row: Mapping[str, Any]) -> None:
        with self._conn(f"append:{name}") as c:
            self._append(c, name, row)
        log_database_operation(name, "APPEND", 1)

    def update_row(self, name: str, row_key: RowKey, fields: Mapping[str, Any]) -> None:
        with self._conn(f"update:{name}") as c:
            self._update(c, name, row_key, fields)
        log_database_operation(name, "UPDATE", 1, key=row_key)

    def update_rows(self, name: str, updates: Iterable[Tuple[RowKey, Mapping[str, Any]]]) -> None:
        """Atualiza várias linhas atomicamente (tudo ou nada)."""
        updates = list(updates)
        if not updates:
            return
        with self._conn(f"update_many:{name}") as c:
            for row_key, fields in updates:
                self._update(c, name, row_key, fields)
        log_database_operation(name, "UPDATE_MANY", len(updates))

    def write_batch(self, appends: Iterable[Append] = (), updates: Iterable[Update] = ()) -> None:
        """Inserts e updates em uma única transação."""
        appends = list(appends)
        updates = list(updates)
        if not appends and not updates:
            return
        with self._conn("batch") as c:
            for name, row_key, fields in updates:
                self._update(c, name, row_key, fields)
            for name, row in appends:
                self._append(c, name, row)
        log_database_operation("*", "BATCH", len(appends) + len(updates),
                               appends=len(appends), updates=len(updates))
