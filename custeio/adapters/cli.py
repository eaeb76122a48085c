# custeio/adapters/cli.py
"""
CLI do custeio (Typer).

Comandos principais:
- migrate                         -> aplica migrações
- params show|set                 -> overheads (pack_per_serve, oh_per_hour, ...)
- ingrediente add                 -> cadastra/atualiza ingrediente
- menu add | menu receita         -> cadastro de menu e ficha técnica
- plataforma add | centro add     -> comissões e centros de custo
- compra                          -> registra compra (cria lote)
- compras-lote <xlsx>             -> compras em lote a partir de XLSX
- consumir | desperdicio          -> baixa FIFO avulsa / perda
- venda                           -> registra venda (COGS via FIFO)
- custo-menu                      -> custo e preço sugerido de um menu
- producao abrir|calcular|finalizar|embalagem
- mao-obra                        -> apontamento de horas por centro de custo
- estoque <ingrediente>           -> lotes e saldo do ingrediente
- rel vendas | rel estoque-baixo  -> relatórios
- logs [tipo]                     -> últimas linhas de um log
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from custeio.config import DB_PATH, DEFAULTS, OVERHEAD_KEYS
from custeio.domain.errors import CusteioError
from custeio.domain.models import (
    CentroCusto, EntradaProducao, EntradaVenda, Ingrediente, Menu, Plataforma,
)
from custeio.infra.logger import get_log_summary
from custeio.infra.migrations import apply_migrations
from custeio.sistema import Sistema
from custeio.adapters.planilhas import importar_compras


app = typer.Typer(help="Custeio FIFO — CLI")
console = Console()


# -----------------------
# util
# -----------------------

def _print_json(obj) -> None:
    typer.echo(json.dumps(obj, ensure_ascii=False, indent=2, default=str))


def _fmt(val: Any) -> str:
    if val is None:
        return "-"
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return f"{val:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return str(val)


def _display_rows(cols: List[str], rows: List[List[Any]], title: str) -> None:
    if not rows:
        console.print(Panel("Nenhum dado encontrado", title=title, border_style="yellow"))
        return
    table = Table(title=title, box=box.ROUNDED)
    for i, c in enumerate(cols):
        num = any(isinstance(r[i], (int, float)) and not isinstance(r[i], bool) for r in rows)
        table.add_column(c, justify="right" if num else "left")
    for r in rows:
        table.add_row(*[_fmt(v) for v in r])
    console.print(table)


def _display_kv(data: Dict[str, Any], title: str) -> None:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Campo")
    table.add_column("Valor", justify="right")
    for k, v in data.items():
        table.add_row(k, _fmt(v))
    console.print(table)


def _display_df(df, title: str) -> None:
    _display_rows([str(c) for c in df.columns], df.values.tolist(), title)


def _avisos(avisos: List[str]) -> None:
    for a in avisos:
        console.print(f"[yellow]aviso:[/] {a}")


@contextmanager
def _sistema(db_path: str) -> Iterator[Sistema]:
    """Abre o sistema e converte erros do domínio em saída amigável + exit 1."""
    s = Sistema.abrir(db_path)
    try:
        yield s
    except CusteioError as e:
        console.print(Panel(f"{e.mensagem}", title=f"[bold red]{e.codigo}[/] {e.entidade or ''}",
                            border_style="red"))
        raise typer.Exit(code=1)
    finally:
        s.shutdown()


DB_OPT = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")


# -----------------------
# infra / params
# -----------------------

@app.command("migrate")
def cmd_migrate(db_path: str = DB_OPT):
    """Aplica migrações de schema."""
    apply_migrations(db_path)
    typer.echo(f">> Migrações aplicadas em: {db_path}")


params_app = typer.Typer(help="Overheads gravados na tabela params.")
app.add_typer(params_app, name="params")


@params_app.command("set")
def cmd_params_set(
    pack_per_serve: Optional[float] = typer.Option(None, help="Embalagem por porção"),
    oh_per_hour: Optional[float] = typer.Option(None, help="Overhead por hora de produção"),
    oh_per_kg: Optional[float] = typer.Option(None, help="Overhead por kg produzido"),
    oh_per_serve: Optional[float] = typer.Option(None, help="Overhead por porção (custo de menu)"),
    db_path: str = DB_OPT,
):
    """Define overheads (apenas os informados são alterados)."""
    valores = {"pack_per_serve": pack_per_serve, "oh_per_hour": oh_per_hour,
               "oh_per_kg": oh_per_kg, "oh_per_serve": oh_per_serve}
    items = [(k, v) for k, v in valores.items() if v is not None]
    if not items:
        typer.echo("Nada a alterar. Informe pelo menos um parâmetro.")
        raise typer.Exit(code=1)
    with _sistema(db_path) as s:
        s.definir_params(items)
    typer.echo(">> Parâmetros atualizados.")


@params_app.command("show")
def cmd_params_show(db_path: str = DB_OPT):
    """Exibe overheads e parâmetros técnicos."""
    with _sistema(db_path) as s:
        oh = s.repos.params.overheads()
    out = {k: getattr(oh, k) for k in OVERHEAD_KEYS}
    out.update({
        "gp_alvo (padrão)": DEFAULTS.gp_alvo,
        "cache_ttl_segundos": DEFAULTS.cache_ttl_segundos,
        "lock_timeout_segundos": DEFAULTS.lock_timeout_segundos,
    })
    _display_kv(out, title="Parâmetros")
    console.print(f"[dim]Banco de dados: {db_path}[/dim]")


# -----------------------
# cadastros
# -----------------------

ingrediente_app = typer.Typer(help="Cadastro de ingredientes")
app.add_typer(ingrediente_app, name="ingrediente")


@ingrediente_app.command("add")
def cmd_ingrediente_add(
    ingrediente_id: str = typer.Argument(..., help="Código do ingrediente"),
    nome: str = typer.Option(..., help="Nome"),
    unidade_estoque: str = typer.Option("un", help="Unidade de estoque (ex.: g, un)"),
    unidade_compra: str = typer.Option("un", help="Unidade de compra (ex.: kg, cx)"),
    razao: float = typer.Option(1.0, help="1 unidade de compra = N unidades de estoque"),
    minimo: float = typer.Option(0.0, help="Estoque mínimo (unidade de estoque)"),
    db_path: str = DB_OPT,
):
    """Cadastra ou atualiza um ingrediente."""
    with _sistema(db_path) as s:
        s.cadastrar_ingrediente(Ingrediente(ingrediente_id, nome, unidade_estoque, unidade_compra, razao, minimo))
    typer.echo(f">> Ingrediente {ingrediente_id} salvo.")


menu_app = typer.Typer(help="Cardápio e ficha técnica")
app.add_typer(menu_app, name="menu")


@menu_app.command("add")
def cmd_menu_add(
    menu_id: str = typer.Argument(...),
    nome: str = typer.Option(...),
    categoria: Optional[str] = typer.Option(None),
    preco: Optional[float] = typer.Option(None, help="Preço de tabela"),
    db_path: str = DB_OPT,
):
    """Cadastra ou atualiza um menu."""
    with _sistema(db_path) as s:
        s.cadastrar_menu(Menu(menu_id, nome, categoria, True, preco))
    typer.echo(f">> Menu {menu_id} salvo.")


@menu_app.command("receita")
def cmd_menu_receita(
    menu_id: str = typer.Argument(...),
    ingrediente_id: str = typer.Argument(...),
    qtd: float = typer.Argument(..., help="Quantidade por porção (unidade de estoque)"),
    db_path: str = DB_OPT,
):
    """Define uma linha da ficha técnica."""
    with _sistema(db_path) as s:
        s.definir_receita(menu_id, ingrediente_id, qtd)
    typer.echo(f">> Receita {menu_id}: {ingrediente_id} = {qtd}")


plataforma_app = typer.Typer(help="Plataformas de venda")
app.add_typer(plataforma_app, name="plataforma")


@plataforma_app.command("add")
def cmd_plataforma_add(
    nome: str = typer.Argument(...),
    comissao_pct: float = typer.Option(0.0, help="Comissão em % (0-100)"),
    db_path: str = DB_OPT,
):
    with _sistema(db_path) as s:
        s.cadastrar_plataforma(Plataforma(nome, comissao_pct))
    typer.echo(f">> Plataforma {nome} salva.")


centro_app = typer.Typer(help="Centros de custo (mão de obra)")
app.add_typer(centro_app, name="centro")


@centro_app.command("add")
def cmd_centro_add(
    centro_id: str = typer.Argument(...),
    nome: str = typer.Option(...),
    taxa: float = typer.Option(..., help="Valor por hora/kg/porção"),
    tipo_taxa: str = typer.Option("hora", help="hora | kg | porcao"),
    db_path: str = DB_OPT,
):
    with _sistema(db_path) as s:
        s.cadastrar_centro(CentroCusto(centro_id, nome, tipo_taxa, taxa))
    typer.echo(f">> Centro {centro_id} salvo.")


# -----------------------
# movimentação
# -----------------------

@app.command("compra")
def cmd_compra(
    ingrediente_id: str = typer.Argument(...),
    qtd: float = typer.Argument(..., help="Quantidade comprada (unidade de compra)"),
    preco_total: float = typer.Argument(...),
    data: Optional[str] = typer.Option(None, help="YYYY-MM-DD (padrão: hoje)"),
    unidade: Optional[str] = typer.Option(None),
    nota: Optional[str] = typer.Option(None, help="Nota do fornecedor"),
    rendimento: Optional[float] = typer.Option(None, help="Rendimento real em unidades de estoque"),
    db_path: str = DB_OPT,
):
    """Registra uma compra (cria um lote)."""
    with _sistema(db_path) as s:
        lote = s.registrar_compra(ingrediente_id, qtd, preco_total, unidade=unidade, data=data,
                                  nota_fornecedor=nota, rendimento_real=rendimento).valor
    _display_kv({"lote_id": lote.lote_id, "data": lote.data, "qtd_estoque": lote.qtd_inicial,
                 "custo_unitario": lote.custo_unitario}, title="Compra Registrada")


@app.command("compras-lote")
def cmd_compras_lote(
    path: str = typer.Argument(..., help="Caminho do XLSX de COMPRAS"),
    db_path: str = DB_OPT,
):
    """Registra compras em lote a partir de um XLSX de colunas fixas."""
    with _sistema(db_path) as s:
        info = importar_compras(s, path)
    console.print(Panel(
        f"Linhas: {info['linhas']}\nImportadas: {info['importadas']}\nErros: {len(info['erros'])}",
        title="Compras em Lote",
    ))
    if info["erros"]:
        _display_rows(["linha", "codigo", "entidade", "mensagem"],
                      [[e["linha"], e["codigo"], e["entidade"], e["mensagem"]] for e in info["erros"]],
                      title="Erros Encontrados")


def _display_consumo(res, title: str) -> None:
    _display_rows(["lote_id", "qtd", "custo_unitario", "custo"],
                  [[i.lote_id, i.qtd, i.custo_unitario, i.custo] for i in res.itens], title=title)
    console.print(f"Custo total: {_fmt(res.custo_total)}  |  custo médio: {_fmt(res.custo_medio)}")


@app.command("consumir")
def cmd_consumir(
    ingrediente_id: str = typer.Argument(...),
    qtd: float = typer.Argument(..., help="Quantidade (unidade de estoque)"),
    db_path: str = DB_OPT,
):
    """Baixa FIFO avulsa de um ingrediente."""
    with _sistema(db_path) as s:
        res = s.consumir(ingrediente_id, qtd).valor
    _display_consumo(res, title=f"Consumo {ingrediente_id}")


@app.command("desperdicio")
def cmd_desperdicio(
    ingrediente_id: str = typer.Argument(...),
    qtd: float = typer.Argument(...),
    nota: Optional[str] = typer.Option(None),
    data: Optional[str] = typer.Option(None),
    db_path: str = DB_OPT,
):
    """Registra perda de estoque (baixa FIFO valorizada)."""
    with _sistema(db_path) as s:
        d = s.registrar_desperdicio(ingrediente_id, qtd, data=data, nota=nota).valor
    _display_kv({"desperdicio_id": d.desperdicio_id, "qtd": d.qtd, "custo": d.custo}, title="Desperdício")


@app.command("venda")
def cmd_venda(
    menu_id: str = typer.Argument(...),
    qtd: float = typer.Argument(...),
    preco: float = typer.Argument(..., help="Preço unitário de venda"),
    plataforma: str = typer.Option("loja"),
    data: Optional[str] = typer.Option(None),
    db_path: str = DB_OPT,
):
    """Registra uma venda; COGS calculado pela baixa FIFO dos ingredientes."""
    with _sistema(db_path) as s:
        res = s.registrar_venda(EntradaVenda(menu_id, qtd, preco, plataforma, data))
    v = res.valor
    _display_kv({"venda_id": v.venda_id, "liquido_unitario": v.liquido_unitario,
                 "cogs": v.cogs, "lucro": v.lucro}, title="Venda Registrada")
    _avisos(res.avisos)


@app.command("custo-menu")
def cmd_custo_menu(
    menu_id: str = typer.Argument(...),
    gp: float = typer.Option(DEFAULTS.gp_alvo, help="Margem bruta alvo (0 <= gp < 1)"),
    db_path: str = DB_OPT,
):
    """Custo por porção e preço sugerido (prévia, sem baixa)."""
    with _sistema(db_path) as s:
        res = s.calcular_custo_menu(menu_id, gp)
    c = res.valor
    _display_rows(["ingrediente", "qtd", "custo_unitario", "custo"],
                  [[l.nome, l.qtd_por_porcao, l.custo_unitario, l.custo] for l in c.linhas],
                  title=f"Ficha técnica {menu_id}")
    _display_kv({"ingredientes": c.custo_ingredientes, "embalagem": c.custo_embalagem,
                 "overhead": c.custo_overhead, "custo_total": c.custo_total,
                 "preco_sugerido": c.preco_sugerido}, title=f"Custo (GP {c.gp_alvo:.0%})")
    _avisos(res.avisos)


producao_app = typer.Typer(help="Produções (batches)")
app.add_typer(producao_app, name="producao")


def _display_producao(res, title: str) -> None:
    r = res.valor
    _display_kv({"receita": r.custo_receita, "embalagem": r.custo_embalagem,
                 "mao_de_obra": r.custo_mao_obra, "overhead": r.custo_overhead,
                 "total": r.custo_total, "por_porcao": r.custo_por_porcao,
                 "variancia": r.variancia}, title=title)
    _avisos(res.avisos)


@producao_app.command("abrir")
def cmd_producao_abrir(
    menu_id: str = typer.Argument(...),
    qtd_planejada: float = typer.Argument(...),
    data: Optional[str] = typer.Option(None),
    db_path: str = DB_OPT,
):
    with _sistema(db_path) as s:
        p = s.abrir_producao(menu_id, qtd_planejada, data=data)
    typer.echo(f">> Produção {p.producao_id} aberta ({menu_id} x {qtd_planejada:g}).")


@producao_app.command("calcular")
def cmd_producao_calcular(
    menu_id: str = typer.Argument(...),
    qtd_planejada: float = typer.Argument(...),
    qtd_real: float = typer.Option(0.0),
    peso_kg: float = typer.Option(0.0),
    horas: float = typer.Option(0.0),
    centro: Optional[str] = typer.Option(None, help="Centro de custo da mão de obra"),
    db_path: str = DB_OPT,
):
    """Prévia do custo de um batch (sem baixa de estoque)."""
    with _sistema(db_path) as s:
        res = s.calcular_producao(EntradaProducao(menu_id, qtd_planejada, qtd_real, peso_kg, horas, centro))
    _display_producao(res, title=f"Prévia de produção {menu_id}")


@producao_app.command("finalizar")
def cmd_producao_finalizar(
    producao_id: str = typer.Argument(...),
    qtd_real: float = typer.Argument(...),
    peso_kg: float = typer.Option(0.0),
    horas: float = typer.Option(0.0),
    centro: Optional[str] = typer.Option(None),
    comprometida: bool = typer.Option(False, "--comprometida", help="Baixa os ingredientes (FIFO)"),
    db_path: str = DB_OPT,
):
    """Calcula, grava e fecha uma produção."""
    with _sistema(db_path) as s:
        res = s.finalizar_producao(producao_id, qtd_real, peso_kg=peso_kg, horas=horas,
                                   centro_id=centro, comprometida=comprometida)
    _display_producao(res, title=f"Produção {producao_id} finalizada")


@producao_app.command("embalagem")
def cmd_producao_embalagem(
    producao_id: str = typer.Argument(...),
    embalagem_id: str = typer.Argument(..., help="Embalagem cadastrada como ingrediente"),
    qtd: float = typer.Argument(...),
    data: Optional[str] = typer.Option(None),
    db_path: str = DB_OPT,
):
    """Baixa FIFO de embalagem usada em uma produção."""
    with _sistema(db_path) as s:
        res = s.usar_embalagem(producao_id, embalagem_id, qtd, data=data).valor
    _display_consumo(res, title=f"Embalagem {embalagem_id} -> {producao_id}")


@app.command("mao-obra")
def cmd_mao_obra(
    centro: str = typer.Argument(..., help="Centro de custo"),
    horas: float = typer.Argument(...),
    taxa: Optional[float] = typer.Option(None, help="Padrão: taxa do centro"),
    data: Optional[str] = typer.Option(None),
    nota: Optional[str] = typer.Option(None),
    db_path: str = DB_OPT,
):
    """Aponta horas de mão de obra (entra no relatório de vendas)."""
    with _sistema(db_path) as s:
        reg = s.registrar_mao_de_obra(centro, horas, taxa=taxa, data=data, nota=nota).valor
    _display_kv({"registro_id": reg.registro_id, "horas": reg.horas, "taxa": reg.taxa,
                 "valor": reg.valor}, title="Mão de obra")


@app.command("estoque")
def cmd_estoque(ingrediente_id: str = typer.Argument(...), db_path: str = DB_OPT):
    """Lotes (FIFO) e saldo de um ingrediente."""
    with _sistema(db_path) as s:
        snap = s.snapshot_ingrediente(ingrediente_id)
    _display_rows(["lote_id", "data", "inicial", "restante", "custo_unitario", "estado"],
                  [[l.lote_id, l.data, l.qtd_inicial, l.qtd_restante, l.custo_unitario, l.estado]
                   for l in snap.lotes],
                  title=f"{snap.ingrediente.nome} ({snap.ingrediente.unidade_estoque})")
    console.print(f"Saldo: {_fmt(snap.total_restante)}  |  status: {snap.status}")


# -----------------------
# relatórios
# -----------------------

rel_app = typer.Typer(help="Relatórios")
app.add_typer(rel_app, name="rel")


@rel_app.command("vendas")
def rel_vendas(
    inicio: Optional[str] = typer.Option(None, help="YYYY-MM-DD"),
    fim: Optional[str] = typer.Option(None, help="YYYY-MM-DD"),
    por: str = typer.Option("dia", help="dia | mes"),
    json_out: bool = typer.Option(False, "--json", help="Saída em JSON"),
    db_path: str = DB_OPT,
):
    """Vendas por período: bruto, líquido, COGS, lucro, GP% e custos do período."""
    with _sistema(db_path) as s:
        rel = s.relatorio_vendas(inicio, fim, por)
    if json_out:
        _print_json({
            "totais": rel["totais"],
            "periodos": rel["periodos"].to_dict(orient="records"),
            "por_menu": rel["por_menu"].to_dict(orient="records"),
            "por_plataforma": rel["por_plataforma"].to_dict(orient="records"),
        })
        return
    _display_df(rel["periodos"], title=f"Vendas por {por}")
    _display_df(rel["por_menu"], title="Por menu")
    _display_df(rel["por_plataforma"], title="Por plataforma")
    _display_kv(rel["totais"], title="Totais")


@rel_app.command("estoque-baixo")
def rel_estoque_baixo(db_path: str = DB_OPT):
    """Ingredientes zerados ou abaixo do mínimo."""
    with _sistema(db_path) as s:
        cols, rows, msg = s.relatorio_estoque_baixo()
    if msg:
        console.print(Panel(msg, title="Estoque Baixo", border_style="green"))
        return
    _display_rows(cols, rows, title="Estoque Baixo")


@app.command("logs")
def cmd_logs(
    tipo: str = typer.Argument("transactions", help="transactions | compras | vendas | database | cache | system"),
    linhas: int = typer.Option(20, help="Últimas N linhas"),
):
    """Mostra as últimas linhas de um log (requer CUSTEIO_LOGGING=1)."""
    resumo = get_log_summary(tipo, linhas)
    if resumo is None:
        typer.echo("Logging desabilitado (defina CUSTEIO_LOGGING=1).")
        raise typer.Exit(code=1)
    typer.echo(resumo)


def main():
    app()


if __name__ == "__main__":
    main()
