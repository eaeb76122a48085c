# custeio/usecases/relatorios.py
"""
Relatórios (somente leitura, sem lock):
- vendas por período (dia ou mês): bruto, líquido, COGS, lucro, GP%,
  desperdício, mão de obra apontada e embalagem usada no período, lucro
  depois de mão de obra e desperdício e lucro final (descontada a embalagem);
  quebras por menu e por plataforma
- estoque baixo (ingredientes abaixo do mínimo)
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from custeio.adapters.parsers import normalizar_data
from custeio.domain.errors import ValidationError
from custeio.domain.formulas import gross_margin_pct
from custeio.domain.models import ORIGEM_EMBALAGEM
from custeio.infra.logger import log_system_event
from custeio.infra.repositories import Repositorios
from .livro_lotes import LivroLotes


GRANULARIDADES = {"dia": 10, "mes": 7}  # prefixo da data ISO
COLUNAS_VALORES = ["qtd", "bruto", "liquido", "cogs", "lucro"]


def _filtrar_periodo(df: pd.DataFrame, inicio: Optional[str], fim: Optional[str]) -> pd.DataFrame:
    if df.empty:
        return df
    mask = pd.Series(True, index=df.index)
    if inicio:
        mask &= df["data"] >= inicio
    if fim:
        mask &= df["data"] <= fim
    return df[mask]


def _com_gp(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df["gp_pct"] = [gross_margin_pct(n, c) for n, c in zip(df["liquido"], df["cogs"])]
    return df


def _agrupar(df: pd.DataFrame, por: str) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame(columns=[por] + COLUNAS_VALORES + ["gp_pct"])
    g = df.groupby(por, as_index=False)[COLUNAS_VALORES].sum().sort_values(por)
    return _com_gp(g).reset_index(drop=True)


def _custo_por_periodo(
    registros: List[Dict[str, Any]],
    coluna: str,
    corte: int,
    inicio: Optional[str],
    fim: Optional[str],
) -> Dict[str, float]:
    df = pd.DataFrame(registros)
    if df.empty:
        return {}
    df = _filtrar_periodo(df, inicio, fim)
    return (
        df.assign(periodo=df["data"].astype(str).str[:corte])
        .groupby("periodo")[coluna].sum().astype(float).to_dict()
    )


def relatorio_vendas(
    repos: Repositorios,
    inicio: Any = None,
    fim: Any = None,
    granularidade: str = "dia",
) -> Dict[str, Any]:
    """
    Retorna um dict com:
        - "totais": dict com qtd, bruto, liquido, cogs, lucro, gp_pct, desperdicio,
          mao_obra, embalagem, lucro_apos_mao_obra, lucro_final
        - "periodos": DataFrame por dia/mês com as mesmas colunas de custo
        - "por_menu": DataFrame por menu (com nome)
        - "por_plataforma": DataFrame por plataforma
    """
    if granularidade not in GRANULARIDADES:
        raise ValidationError(f"granularidade inválida: {granularidade} (use 'dia' ou 'mes')")
    inicio = normalizar_data(inicio, padrao_hoje=False)
    fim = normalizar_data(fim, padrao_hoje=False)
    if inicio and fim and inicio > fim:
        raise ValidationError(f"período inválido: {inicio} > {fim}")
    log_system_event("relatorio_vendas_start", {"inicio": inicio, "fim": fim, "granularidade": granularidade})

    vendas = pd.DataFrame([asdict(v) for v in repos.vendas.get_all()])
    if vendas.empty:
        vendas = pd.DataFrame(columns=["data", "plataforma", "menu_id", "qtd", "preco_unitario",
                                       "liquido_unitario", "cogs", "lucro"])
    vendas = _filtrar_periodo(vendas, inicio, fim).copy()
    corte = GRANULARIDADES[granularidade]
    vendas["periodo"] = vendas["data"].astype(str).str[:corte]
    vendas["bruto"] = vendas["qtd"].astype(float) * vendas["preco_unitario"].astype(float)
    vendas["liquido"] = vendas["qtd"].astype(float) * vendas["liquido_unitario"].astype(float)
    for col in ("qtd", "cogs", "lucro"):
        vendas[col] = vendas[col].astype(float)

    custos = {
        "desperdicio": _custo_por_periodo(
            [asdict(d) for d in repos.desperdicios.get_all()], "custo", corte, inicio, fim),
        "mao_obra": _custo_por_periodo(
            [asdict(m) for m in repos.mao_obra.get_all()], "valor", corte, inicio, fim),
        "embalagem": _custo_por_periodo(
            [asdict(c) for c in repos.cogs.get_all(origem=ORIGEM_EMBALAGEM)], "custo_total", corte, inicio, fim),
    }

    periodos = _agrupar(vendas, "periodo")
    # períodos só com desperdício, mão de obra ou embalagem também aparecem
    extras = sorted(set().union(*custos.values()) - set(periodos["periodo"]))
    if extras:
        vazios = pd.DataFrame({"periodo": extras, **{c: 0.0 for c in COLUNAS_VALORES}, "gp_pct": 0.0})
        periodos = vazios if periodos.empty else pd.concat([periodos, vazios], ignore_index=True)
        periodos = periodos.sort_values("periodo").reset_index(drop=True)
    for coluna, por_periodo in custos.items():
        periodos[coluna] = [float(por_periodo.get(p, 0.0)) for p in periodos["periodo"]]
    periodos["lucro_apos_mao_obra"] = periodos["lucro"].astype(float) - periodos["mao_obra"] - periodos["desperdicio"]
    periodos["lucro_final"] = periodos["lucro_apos_mao_obra"] - periodos["embalagem"]

    por_menu = _agrupar(vendas, "menu_id")
    menus = repos.menus.mapa()
    por_menu.insert(1, "nome", [menus[m].nome if m in menus else m for m in por_menu["menu_id"]])
    por_plataforma = _agrupar(vendas, "plataforma")

    totais = {c: float(vendas[c].sum()) if not vendas.empty else 0.0 for c in COLUNAS_VALORES}
    totais["gp_pct"] = gross_margin_pct(totais["liquido"], totais["cogs"])
    for coluna, por_periodo in custos.items():
        totais[coluna] = float(sum(por_periodo.values()))
    totais["lucro_apos_mao_obra"] = totais["lucro"] - totais["mao_obra"] - totais["desperdicio"]
    totais["lucro_final"] = totais["lucro_apos_mao_obra"] - totais["embalagem"]

    log_system_event("relatorio_vendas_fim", {"vendas": len(vendas), "periodos": len(periodos)})
    return {
        "inicio": inicio,
        "fim": fim,
        "granularidade": granularidade,
        "totais": totais,
        "periodos": periodos,
        "por_menu": por_menu,
        "por_plataforma": por_plataforma,
    }


def relatorio_estoque_baixo(livro: LivroLotes) -> Tuple[List[str], List[List[Any]], Optional[str]]:
    """
    Retorna colunas, linhas e mensagem para exibição tabular.
    Lista ingredientes com status ZERADO ou BAIXO em relação ao estoque mínimo,
    mais críticos primeiro.
    """
    cols = ["ingrediente_id", "nome", "estoque", "unidade", "minimo", "status", "custo_atual"]
    linhas: List[List[Any]] = []
    for ing in sorted(livro.repos.ingredientes.mapa().values(), key=lambda i: i.id):
        snap = livro.snapshot_ingrediente(ing.id)
        if snap.status not in ("ZERADO", "BAIXO"):
            continue
        linhas.append([
            ing.id,
            ing.nome,
            round(snap.total_restante, 3),
            ing.unidade_estoque,
            ing.estoque_minimo,
            snap.status,
            livro.preview_custo(ing.id),
        ])
    linhas.sort(key=lambda r: (0 if r[5] == "ZERADO" else 1, r[0]))
    log_system_event("relatorio_estoque_baixo", {"itens": len(linhas)})
    msg = None if linhas else "Nenhum ingrediente abaixo do mínimo."
    return cols, linhas, msg
