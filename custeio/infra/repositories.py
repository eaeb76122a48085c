# custeio/infra/repositories.py
"""
Repositórios sobre o gateway + cache.

As linhas (dicts) do gateway são convertidas em registros tipados aqui,
na fronteira; o restante do pacote só enxerga dataclasses.

Classes:
- ParamsRepo
- IngredienteRepo
- CompraRepo          (compras + lotes, chave de cache "compras:<id>")
- MenuRepo
- ReceitaRepo
- CentroCustoRepo
- PlataformaRepo
- ProducaoRepo
- VendaRepo
- CogsRepo
- DesperdicioRepo
- MaoObraRepo
"""

from __future__ import annotations

from dataclasses import asdict, fields
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from custeio.config import OVERHEAD_KEYS
from custeio.domain.errors import ValidationError
from custeio.domain.models import (
    CentroCusto, Compra, Desperdicio, Ingrediente, ItemReceita, LinhaCogs, Lote,
    Menu, Overheads, Plataforma, Producao, RegistroMaoObra, Venda,
)
from .cache import CacheLayer
from .gateway import SqliteGateway


# Chaves lógicas do cache
CHAVE_PARAMS = "params"
CHAVE_INGREDIENTES = "ingredientes"
CHAVE_MENUS = "menus"
CHAVE_RECEITAS = "receitas"
CHAVE_CENTROS = "centros_custo"
CHAVE_PLATAFORMAS = "plataformas"


def chave_compras(ingrediente_id: str) -> str:
    return f"compras:{ingrediente_id}"


def chave_snapshot(ingrediente_id: str) -> str:
    return f"snapshot:{ingrediente_id}"


# -------------------------
# Conversões linha <-> registro
# -------------------------

def _float(v: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if v is None or v == "":
        return default
    try:
        return float(v)
    except (TypeError, ValueError):
        raise ValidationError(f"valor numérico inválido: {v!r}") from None


def _str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _bool(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "sim", "s", "y", "yes"}
    return bool(v)


def ingrediente_from_row(r: Mapping[str, Any]) -> Ingrediente:
    return Ingrediente(
        id=str(r["id"]),
        nome=_str(r.get("nome")) or str(r["id"]),
        unidade_estoque=_str(r.get("unidade_estoque")) or "un",
        unidade_compra=_str(r.get("unidade_compra")) or "un",
        razao_compra_estoque=_float(r.get("razao_compra_estoque"), 1.0),
        estoque_minimo=_float(r.get("estoque_minimo"), 0.0),
    )


def lote_from_row(r: Mapping[str, Any]) -> Lote:
    return Lote(
        lote_id=str(r["lote_id"]),
        ingrediente_id=str(r["ingrediente_id"]),
        data=str(r["data"]),
        qtd_inicial=_float(r.get("qtd_estoque")),
        qtd_restante=_float(r.get("qtd_restante")),
        custo_unitario=_float(r.get("custo_unitario")),
    )


def compra_from_row(r: Mapping[str, Any]) -> Compra:
    return Compra(
        data=str(r["data"]),
        lote_id=str(r["lote_id"]),
        ingrediente_id=str(r["ingrediente_id"]),
        qtd_compra=_float(r.get("qtd_compra")),
        unidade=_str(r.get("unidade")) or "",
        preco_total=_float(r.get("preco_total")),
        preco_unitario=_float(r.get("preco_unitario")),
        qtd_estoque=_float(r.get("qtd_estoque")),
        custo_unitario=_float(r.get("custo_unitario")),
        nota_fornecedor=_str(r.get("nota_fornecedor")),
    )


def compra_to_row(c: Compra, qtd_restante: Optional[float] = None) -> Dict[str, Any]:
    row = asdict(c)
    row["qtd_restante"] = c.qtd_estoque if qtd_restante is None else qtd_restante
    return row


def menu_from_row(r: Mapping[str, Any]) -> Menu:
    return Menu(
        menu_id=str(r["menu_id"]),
        nome=_str(r.get("nome")) or str(r["menu_id"]),
        categoria=_str(r.get("categoria")),
        ativo=_bool(1 if r.get("ativo") is None else r.get("ativo")),
        preco=_float(r.get("preco"), None),
    )


def item_receita_from_row(r: Mapping[str, Any]) -> ItemReceita:
    return ItemReceita(
        menu_id=str(r["menu_id"]),
        ingrediente_id=str(r["ingrediente_id"]),
        qtd_por_porcao=_float(r.get("qtd_por_porcao")),
    )


def centro_from_row(r: Mapping[str, Any]) -> CentroCusto:
    return CentroCusto(
        centro_id=str(r["centro_id"]),
        nome=_str(r.get("nome")) or str(r["centro_id"]),
        tipo_taxa=_str(r.get("tipo_taxa")) or "hora",
        taxa=_float(r.get("taxa")),
    )


def plataforma_from_row(r: Mapping[str, Any]) -> Plataforma:
    return Plataforma(nome=str(r["nome"]), comissao_pct=_float(r.get("comissao_pct")))


def producao_from_row(r: Mapping[str, Any]) -> Producao:
    opcionais = {
        k: _float(r.get(k), None)
        for k in ("qtd_real", "peso_kg", "horas", "custo_receita", "custo_embalagem",
                  "custo_mao_obra", "custo_overhead", "custo_total", "custo_por_porcao")
    }
    return Producao(
        producao_id=str(r["producao_id"]),
        data=str(r["data"]),
        menu_id=str(r["menu_id"]),
        qtd_planejada=_float(r.get("qtd_planejada")),
        status=_str(r.get("status")) or "ABERTA",
        comprometida=_bool(r.get("comprometida") or 0),
        nota=_str(r.get("nota")),
        **opcionais,
    )


def _from_row(cls, r: Mapping[str, Any]):
    """Construção genérica para registros só com escalares."""
    return cls(**{f.name: r.get(f.name) for f in fields(cls)})


def venda_from_row(r: Mapping[str, Any]) -> Venda:
    return _from_row(Venda, r)


def cogs_from_row(r: Mapping[str, Any]) -> LinhaCogs:
    return _from_row(LinhaCogs, r)


def desperdicio_from_row(r: Mapping[str, Any]) -> Desperdicio:
    return _from_row(Desperdicio, r)


def mao_obra_from_row(r: Mapping[str, Any]) -> RegistroMaoObra:
    return _from_row(RegistroMaoObra, r)


# -------------------------
# Base
# -------------------------

class _Repo:
    tabela: str = ""

    def __init__(self, gateway: SqliteGateway, cache: CacheLayer):
        self.gw = gateway
        self.cache = cache

    def _upsert(self, chave: Tuple[str, ...], row: Dict[str, Any]) -> None:
        filtro = {k: row[k] for k in chave}
        existentes = self.gw.read_table(self.tabela, filtro)
        if existentes:
            resto = {k: v for k, v in row.items() if k not in chave}
            self.gw.update_row(self.tabela, tuple(filtro.values()) if len(chave) > 1 else row[chave[0]], resto)
        else:
            self.gw.append_row(self.tabela, row)


# -------------------------
# Params (overheads)
# -------------------------

class ParamsRepo(_Repo):
    tabela = "params"

    def get_all(self) -> Dict[str, str]:
        return self.cache.get_or_load(
            CHAVE_PARAMS,
            lambda: {r["chave"]: r["valor"] for r in self.gw.read_table(self.tabela)},
        )

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.get_all().get(key, default)

    def get_float(self, key: str, default: float) -> float:
        v = self.get(key, None)
        if v is None or str(v).strip() == "":
            return default
        try:
            return float(v)
        except ValueError:
            raise ValidationError(f"parâmetro '{key}' não numérico: {v!r}", entidade=key) from None

    def set_many(self, items: Iterable[Tuple[str, Any]]) -> None:
        for k, v in items:
            self._upsert(("chave",), {"chave": str(k), "valor": None if v is None else str(v)})
        self.cache.invalidate(CHAVE_PARAMS)

    def overheads(self) -> Overheads:
        return Overheads(**{k: self.get_float(k, 0.0) for k in OVERHEAD_KEYS})


# -------------------------
# Cadastros
# -------------------------

class IngredienteRepo(_Repo):
    tabela = "ingredientes"

    def mapa(self) -> Dict[str, Ingrediente]:
        return self.cache.get_or_load(
            CHAVE_INGREDIENTES,
            lambda: {i.id: i for i in map(ingrediente_from_row, self.gw.read_table(self.tabela))},
        )

    def get(self, ingrediente_id: str) -> Optional[Ingrediente]:
        return self.mapa().get(ingrediente_id)

    def upsert(self, ing: Ingrediente) -> None:
        if not ing.id or not str(ing.id).strip():
            raise ValidationError("id do ingrediente é obrigatório")
        if ing.razao_compra_estoque is None or ing.razao_compra_estoque <= 0:
            raise ValidationError("razao_compra_estoque deve ser > 0", entidade=ing.id)
        self._upsert(("id",), asdict(ing))
        self.cache.invalidate(CHAVE_INGREDIENTES)
        self.cache.invalidate(chave_snapshot(ing.id))


class MenuRepo(_Repo):
    tabela = "menus"

    def mapa(self) -> Dict[str, Menu]:
        return self.cache.get_or_load(
            CHAVE_MENUS,
            lambda: {m.menu_id: m for m in map(menu_from_row, self.gw.read_table(self.tabela))},
        )

    def get(self, menu_id: str) -> Optional[Menu]:
        return self.mapa().get(menu_id)

    def upsert(self, menu: Menu) -> None:
        if not menu.menu_id:
            raise ValidationError("menu_id é obrigatório")
        row = asdict(menu)
        row["ativo"] = 1 if menu.ativo else 0
        self._upsert(("menu_id",), row)
        self.cache.invalidate(CHAVE_MENUS)


class ReceitaRepo(_Repo):
    tabela = "receitas"

    def por_menu(self) -> Dict[str, List[ItemReceita]]:
        def _load() -> Dict[str, List[ItemReceita]]:
            out: Dict[str, List[ItemReceita]] = {}
            for item in map(item_receita_from_row, self.gw.read_table(self.tabela)):
                out.setdefault(item.menu_id, []).append(item)
            return out

        return self.cache.get_or_load(CHAVE_RECEITAS, _load)

    def itens(self, menu_id: str) -> List[ItemReceita]:
        return list(self.por_menu().get(menu_id, []))

    def upsert(self, item: ItemReceita) -> None:
        if item.qtd_por_porcao is None or item.qtd_por_porcao <= 0:
            raise ValidationError("qtd_por_porcao deve ser > 0", entidade=f"{item.menu_id}/{item.ingrediente_id}")
        self._upsert(("menu_id", "ingrediente_id"), asdict(item))
        self.cache.invalidate(CHAVE_RECEITAS)


class CentroCustoRepo(_Repo):
    tabela = "centros_custo"

    def mapa(self) -> Dict[str, CentroCusto]:
        return self.cache.get_or_load(
            CHAVE_CENTROS,
            lambda: {c.centro_id: c for c in map(centro_from_row, self.gw.read_table(self.tabela))},
        )

    def get(self, centro_id: str) -> Optional[CentroCusto]:
        return self.mapa().get(centro_id)

    def upsert(self, centro: CentroCusto) -> None:
        if centro.tipo_taxa not in {"hora", "kg", "porcao"}:
            raise ValidationError(f"tipo_taxa inválido: {centro.tipo_taxa}", entidade=centro.centro_id)
        if centro.taxa < 0:
            raise ValidationError("taxa deve ser >= 0", entidade=centro.centro_id)
        self._upsert(("centro_id",), asdict(centro))
        self.cache.invalidate(CHAVE_CENTROS)


class PlataformaRepo(_Repo):
    tabela = "plataformas"

    def mapa(self) -> Dict[str, Plataforma]:
        return self.cache.get_or_load(
            CHAVE_PLATAFORMAS,
            lambda: {p.nome: p for p in map(plataforma_from_row, self.gw.read_table(self.tabela))},
        )

    def get(self, nome: str) -> Optional[Plataforma]:
        return self.mapa().get(nome)

    def upsert(self, plat: Plataforma) -> None:
        if not (0.0 <= plat.comissao_pct <= 100.0):
            raise ValidationError("comissao_pct deve estar entre 0 e 100", entidade=plat.nome)
        self._upsert(("nome",), asdict(plat))
        self.cache.invalidate(CHAVE_PLATAFORMAS)


# -------------------------
# Compras / lotes
# -------------------------

class CompraRepo(_Repo):
    tabela = "compras"

    def lotes_de(self, ingrediente_id: str) -> List[Lote]:
        """Lotes do ingrediente (ordem de inserção), via cache."""
        return self.cache.get_or_load(
            chave_compras(ingrediente_id),
            lambda: [lote_from_row(r) for r in self.gw.read_table(self.tabela, {"ingrediente_id": ingrediente_id})],
        )

    def get_all(self) -> List[Compra]:
        return [compra_from_row(r) for r in self.gw.read_table(self.tabela)]


# -------------------------
# Movimentos (sem cache: consultados por relatórios)
# -------------------------

class ProducaoRepo(_Repo):
    tabela = "producoes"

    def get(self, producao_id: str) -> Optional[Producao]:
        rows = self.gw.read_table(self.tabela, {"producao_id": producao_id})
        return producao_from_row(rows[0]) if rows else None

    def insert(self, p: Producao) -> None:
        row = asdict(p)
        row["comprometida"] = 1 if p.comprometida else 0
        self.gw.append_row(self.tabela, row)


class VendaRepo(_Repo):
    tabela = "vendas"

    def get_all(self) -> List[Venda]:
        return [venda_from_row(r) for r in self.gw.read_table(self.tabela)]


class CogsRepo(_Repo):
    tabela = "cogs"

    def get_all(self, origem: Optional[str] = None, origem_id: Optional[str] = None) -> List[LinhaCogs]:
        filtro: Dict[str, Any] = {}
        if origem:
            filtro["origem"] = origem
        if origem_id:
            filtro["origem_id"] = origem_id
        return [cogs_from_row(r) for r in self.gw.read_table(self.tabela, filtro or None)]


class DesperdicioRepo(_Repo):
    tabela = "desperdicios"

    def get_all(self) -> List[Desperdicio]:
        return [desperdicio_from_row(r) for r in self.gw.read_table(self.tabela)]


class MaoObraRepo(_Repo):
    tabela = "mao_de_obra"

    def get_all(self) -> List[RegistroMaoObra]:
        return [mao_obra_from_row(r) for r in self.gw.read_table(self.tabela)]

    def insert(self, reg: RegistroMaoObra) -> None:
        self.gw.append_row(self.tabela, asdict(reg))


class Repositorios:
    """Agrupa os repositórios de um Sistema."""

    def __init__(self, gateway: SqliteGateway, cache: CacheLayer):
        self.params = ParamsRepo(gateway, cache)
        self.ingredientes = IngredienteRepo(gateway, cache)
        self.compras = CompraRepo(gateway, cache)
        self.menus = MenuRepo(gateway, cache)
        self.receitas = ReceitaRepo(gateway, cache)
        self.centros = CentroCustoRepo(gateway, cache)
        self.plataformas = PlataformaRepo(gateway, cache)
        self.producoes = ProducaoRepo(gateway, cache)
        self.vendas = VendaRepo(gateway, cache)
        self.cogs = CogsRepo(gateway, cache)
        self.desperdicios = DesperdicioRepo(gateway, cache)
        self.mao_obra = MaoObraRepo(gateway, cache)
