from math import isclose

import pytest

from custeio.domain.errors import BackendUnavailableError, InsufficientStockError, ValidationError
from custeio.domain.models import CentroCusto, EntradaProducao, Ingrediente, Menu


def _seed_producao(s):
    s.cadastrar_menu(Menu("caipirinha", "Caipirinha"))
    s.definir_receita("caipirinha", "Lime", 2)
    s.cadastrar_centro(CentroCusto("cozinha", "Cozinha", "hora", 15))
    s.definir_params([("pack_per_serve", 0.5), ("oh_per_hour", 5), ("oh_per_kg", 1)])
    return s


def test_previa_de_producao_componentes(lime):
    _seed_producao(lime)
    res = lime.calcular_producao(EntradaProducao(
        "caipirinha", qtd_planejada=10, qtd_real=9, peso_kg=4, horas=2, centro_id="cozinha",
    ))
    r = res.valor
    assert res.avisos == []
    assert r.custo_receita == 40.0
    assert r.custo_embalagem == 5.0
    assert r.custo_mao_obra == 30.0
    assert r.custo_overhead == 14.0
    assert r.custo_total == 89.0
    assert isclose(r.custo_por_porcao, 89.0 / 9)
    assert r.variancia == -1.0
    assert lime.snapshot_ingrediente("Lime").total_restante == 30


def test_sem_centro_de_custo_avisa_e_zera_mao_de_obra(lime):
    _seed_producao(lime)
    res = lime.calcular_producao(EntradaProducao("caipirinha", 10, 10, horas=3))
    assert res.avisos == ["missing cost center"]
    assert res.valor.custo_mao_obra == 0.0

    res = lime.calcular_producao(EntradaProducao("caipirinha", 10, 10, horas=3, centro_id="bar"))
    assert res.avisos == ["missing cost center: bar"]


def test_centro_por_kg_usa_peso(lime):
    _seed_producao(lime)
    lime.cadastrar_centro(CentroCusto("acougue", "Açougue", "kg", 3))
    r = lime.calcular_producao(EntradaProducao("caipirinha", 10, 10, peso_kg=4, horas=8, centro_id="acougue")).valor
    assert r.custo_mao_obra == 12.0


def test_taxas_da_entrada_sobrepoem_params(lime):
    _seed_producao(lime)
    r = lime.calcular_producao(EntradaProducao(
        "caipirinha", 10, 10, horas=1, centro_id="cozinha", pack_per_serve=0, oh_per_hour=0,
    )).valor
    assert r.custo_embalagem == 0.0
    assert r.custo_overhead == 0.0


def test_producao_comprometida_baixa_lotes(lime):
    _seed_producao(lime)
    r = lime.calcular_producao(EntradaProducao(
        "caipirinha", 10, 10, horas=1, centro_id="cozinha", comprometida=True, producao_id="B1",
    )).valor
    assert r.custo_receita == 45.0          # 10 x 2.0 + 10 x 2.5
    assert r.consumos["Lime"].qtd == 20
    assert lime.snapshot_ingrediente("Lime").total_restante == 10
    cogs = lime.repos.cogs.get_all(origem="PRODUCAO", origem_id="B1")
    assert sum(c.qtd for c in cogs) == 20


def test_producao_comprometida_sem_estoque_nao_baixa(lime):
    _seed_producao(lime)
    with pytest.raises(InsufficientStockError):
        lime.calcular_producao(EntradaProducao("caipirinha", 16, 16, comprometida=True))
    assert lime.snapshot_ingrediente("Lime").total_restante == 30
    assert lime.repos.cogs.get_all() == []


@pytest.mark.parametrize(
    "entrada",
    [
        EntradaProducao("caipirinha", 0),
        EntradaProducao("caipirinha", 10, qtd_real=-1),
        EntradaProducao("caipirinha", 10, horas=-2),
        EntradaProducao("nao_existe", 10),
    ],
)
def test_producao_entradas_invalidas(lime, entrada):
    _seed_producao(lime)
    with pytest.raises(ValidationError):
        lime.calcular_producao(entrada)


def test_abrir_e_finalizar_producao(lime):
    _seed_producao(lime)
    p = lime.abrir_producao("caipirinha", 10, data="2024-01-08")
    assert p.producao_id.startswith("BATCH-")
    assert lime.repos.producoes.get(p.producao_id).status == "ABERTA"

    res = lime.finalizar_producao(p.producao_id, 9, peso_kg=4, horas=2, centro_id="cozinha")
    assert res.valor.custo_total == 89.0

    gravada = lime.repos.producoes.get(p.producao_id)
    assert gravada.status == "FECHADA"
    assert gravada.qtd_real == 9
    assert gravada.custo_total == 89.0
    assert isclose(gravada.custo_por_porcao, 89.0 / 9)
    assert gravada.comprometida is False

    with pytest.raises(ValidationError):
        lime.finalizar_producao(p.producao_id, 9)


def test_finalizar_comprometida_fecha_na_mesma_transacao(lime):
    _seed_producao(lime)
    p = lime.abrir_producao("caipirinha", 5)
    lime.finalizar_producao(p.producao_id, 5, horas=1, centro_id="cozinha", comprometida=True)
    gravada = lime.repos.producoes.get(p.producao_id)
    assert gravada.status == "FECHADA"
    assert gravada.comprometida is True
    assert gravada.custo_receita == 20.0
    assert {c.origem_id for c in lime.repos.cogs.get_all(origem="PRODUCAO")} == {p.producao_id}
    assert lime.snapshot_ingrediente("Lime").total_restante == 20


def test_finalizar_comprometida_sem_estoque_mantem_aberta(lime):
    _seed_producao(lime)
    p = lime.abrir_producao("caipirinha", 50)
    with pytest.raises(InsufficientStockError):
        lime.finalizar_producao(p.producao_id, 50, comprometida=True)
    assert lime.repos.producoes.get(p.producao_id).status == "ABERTA"


def test_finalizar_producao_inexistente(lime):
    with pytest.raises(ValidationError):
        lime.finalizar_producao("BATCH-NADA", 1)


def test_finalizar_previa_re_tenta_falha_transitoria(lime, monkeypatch):
    _seed_producao(lime)
    p = lime.abrir_producao("caipirinha", 10)
    original = lime.gateway.write_batch
    falhas = [BackendUnavailableError("banco travado")]

    def instavel(appends=(), updates=()):
        if falhas:
            raise falhas.pop()
        return original(appends, updates)

    monkeypatch.setattr(lime.gateway, "write_batch", instavel)
    lime.finalizar_producao(p.producao_id, 10, horas=1, centro_id="cozinha")
    assert falhas == []
    assert lime.repos.producoes.get(p.producao_id).status == "FECHADA"


def test_apontamento_de_mao_de_obra(lime):
    _seed_producao(lime)
    reg = lime.registrar_mao_de_obra("cozinha", 2, data="2024-01-08").valor
    assert reg.registro_id.startswith("LAB-")
    assert (reg.taxa, reg.valor) == (15.0, 30.0)

    reg = lime.registrar_mao_de_obra("cozinha", 1.5, taxa=20).valor
    assert reg.valor == 30.0
    assert len(lime.repos.mao_obra.get_all()) == 2

    with pytest.raises(ValidationError):
        lime.registrar_mao_de_obra("bar", 1)
    with pytest.raises(ValidationError):
        lime.registrar_mao_de_obra("cozinha", 0)


def _seed_copos(s):
    s.cadastrar_ingrediente(Ingrediente("copo", "Copo 300ml"))
    s.registrar_compra("copo", 10, 5.0, data="2024-01-01")
    s.registrar_compra("copo", 10, 10.0, data="2024-01-02")


def test_embalagem_baixa_fifo_e_grava_linhas_por_lote(lime):
    _seed_producao(lime)
    _seed_copos(lime)
    p = lime.abrir_producao("caipirinha", 12, data="2024-01-08")

    res = lime.usar_embalagem(p.producao_id, "copo", 12).valor
    assert [(i.qtd, i.custo_unitario) for i in res.itens] == [(10.0, 0.5), (2.0, 1.0)]
    assert res.custo_total == 7.0

    linhas = lime.repos.cogs.get_all(origem="EMBALAGEM")
    assert {l.origem_id for l in linhas} == {p.producao_id}
    assert [l.data for l in linhas] == ["2024-01-08", "2024-01-08"]
    assert sum(l.custo_total for l in linhas) == 7.0
    assert lime.snapshot_ingrediente("copo").total_restante == 8


def test_embalagem_sem_estoque_ou_producao_desconhecida(lime):
    _seed_producao(lime)
    _seed_copos(lime)
    p = lime.abrir_producao("caipirinha", 30)
    with pytest.raises(InsufficientStockError):
        lime.usar_embalagem(p.producao_id, "copo", 21)
    assert lime.snapshot_ingrediente("copo").total_restante == 20
    with pytest.raises(ValidationError):
        lime.usar_embalagem("BATCH-NADA", "copo", 1)
