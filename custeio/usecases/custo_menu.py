# custeio/usecases/custo_menu.py
"""
UC: Custo de menu e registro de venda.

- calcular_custo_menu(): prévia de custo por porção e preço sugerido
  (não altera lotes; ingredientes sem preço viram aviso).
- registrar_venda(): baixa FIFO de todos os ingredientes da ficha técnica
  (tudo ou nada) e grava venda + linhas de COGS em uma transação.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional, Tuple

from custeio.adapters.parsers import normalizar_data
from custeio.config import DEFAULTS
from custeio.domain import formulas
from custeio.domain.errors import CusteioError, MissingIngredientError, MissingPriceDataError, ValidationError
from custeio.domain.models import (
    ORIGEM_VENDA, CustoMenu, EntradaVenda, ItemReceita, LinhaCustoMenu, Resultado,
    ResultadoConsumo, Venda,
)
from custeio.infra.logger import log_transaction, log_venda
from .livro_lotes import LivroLotes, Registro, novo_id


def aviso_sem_ingrediente(ingrediente_id: str) -> str:
    return f"missing ingredient: {ingrediente_id}"


def aviso_sem_preco(ingrediente_id: str) -> str:
    return f"missing price: {ingrediente_id}"


def aviso_sem_receita(menu_id: str) -> str:
    return f"missing recipe: {menu_id}"


def validar_gp(gp_alvo: Any) -> float:
    try:
        gp = float(gp_alvo)
    except (TypeError, ValueError):
        raise ValidationError(f"gp_alvo inválido: {gp_alvo!r}") from None
    if not (0.0 <= gp < 1.0):
        raise ValidationError(f"gp_alvo deve estar em [0, 1): {gp}")
    return gp


class MotorCusto:
    def __init__(self, livro: LivroLotes):
        self.livro = livro
        self.repos = livro.repos

    def custear_receita(self, itens: List[ItemReceita]) -> Tuple[List[LinhaCustoMenu], float, List[str]]:
        """Precifica cada linha pelo lote ativo mais antigo.

        Returns:
            (linhas, custo por porção, avisos)
        """
        linhas: List[LinhaCustoMenu] = []
        avisos: List[str] = []
        total = 0.0
        for item in itens:
            nome = item.ingrediente_id
            custo_un: Optional[float] = None
            try:
                custo_un = self.livro.custo_atual(item.ingrediente_id)
            except MissingIngredientError:
                avisos.append(aviso_sem_ingrediente(item.ingrediente_id))
            except MissingPriceDataError:
                avisos.append(aviso_sem_preco(item.ingrediente_id))
            ing = self.repos.ingredientes.get(item.ingrediente_id)
            if ing is not None:
                nome = ing.nome
            custo = item.qtd_por_porcao * custo_un if custo_un is not None else 0.0
            total += custo
            linhas.append(LinhaCustoMenu(
                ingrediente_id=item.ingrediente_id,
                nome=nome,
                qtd_por_porcao=item.qtd_por_porcao,
                custo_unitario=custo_un,
                custo=custo,
                tem_preco=custo_un is not None,
            ))
        return linhas, total, avisos

    def calcular_custo_menu(self, menu_id: str, gp_alvo: Optional[float] = None) -> Resultado[CustoMenu]:
        gp = validar_gp(DEFAULTS.gp_alvo if gp_alvo is None else gp_alvo)
        itens = self.repos.receitas.itens(menu_id)
        if not itens:
            raise ValidationError("menu sem ficha técnica", entidade=menu_id)

        linhas, custo_ingredientes, avisos = self.custear_receita(itens)
        oh = self.repos.params.overheads()
        total = custo_ingredientes + oh.pack_per_serve + oh.oh_per_serve
        custo = CustoMenu(
            menu_id=menu_id,
            linhas=linhas,
            custo_ingredientes=custo_ingredientes,
            custo_embalagem=oh.pack_per_serve,
            custo_overhead=oh.oh_per_serve,
            custo_total=total,
            gp_alvo=gp,
            preco_sugerido=formulas.suggested_price(total, gp),
        )
        return Resultado(custo, avisos)

    def registrar_venda(self, entrada: EntradaVenda, prazo: Optional[float] = None) -> Resultado[Venda]:
        payload = asdict(entrada)
        try:
            try:
                qtd = float(entrada.qtd)
                preco = float(entrada.preco_unitario)
            except (TypeError, ValueError):
                raise ValidationError("qtd/preço inválidos", entidade=entrada.menu_id) from None
            if qtd <= 0:
                raise ValidationError("qtd deve ser > 0", entidade=entrada.menu_id)
            if preco < 0:
                raise ValidationError("preco_unitario deve ser >= 0", entidade=entrada.menu_id)
            if self.repos.menus.get(entrada.menu_id) is None:
                raise ValidationError("menu não cadastrado", entidade=entrada.menu_id)
            data = normalizar_data(entrada.data)
            plataforma = (entrada.plataforma or "loja").strip()

            avisos: List[str] = []
            plat = self.repos.plataformas.get(plataforma)
            if plat is None:
                avisos.append(f"unknown platform: {plataforma}")
            liquido = formulas.net_unit_price(preco, plat.comissao_pct if plat else 0.0)

            demandas: Dict[str, float] = {}
            itens = self.repos.receitas.itens(entrada.menu_id)
            if not itens:
                avisos.append(aviso_sem_receita(entrada.menu_id))
            for item in itens:
                demandas[item.ingrediente_id] = demandas.get(item.ingrediente_id, 0.0) + item.qtd_por_porcao * qtd

            venda_id = novo_id("SALE")
            gravada: Dict[str, Venda] = {}

            def _montar(resultados: Dict[str, ResultadoConsumo]) -> List[Registro]:
                cogs = sum(r.custo_total for r in resultados.values())
                venda = Venda(
                    venda_id=venda_id,
                    data=data,
                    plataforma=plataforma,
                    menu_id=entrada.menu_id,
                    qtd=qtd,
                    preco_unitario=preco,
                    liquido_unitario=liquido,
                    cogs=cogs,
                    lucro=liquido * qtd - cogs,
                )
                gravada["v"] = venda
                return [("vendas", asdict(venda))]

            self.livro.consumir_varios(
                demandas, origem=ORIGEM_VENDA, origem_id=venda_id, data=data,
                montar=_montar, prazo=prazo,
            )
        except CusteioError as e:
            log_transaction("venda", payload, error=str(e))
            raise

        venda = gravada["v"]
        log_venda("insert", venda.menu_id, venda.qtd, venda_id=venda.venda_id,
                  plataforma=venda.plataforma, cogs=venda.cogs, lucro=venda.lucro)
        log_transaction("venda", payload, result=venda.venda_id)
        return Resultado(venda, avisos)
