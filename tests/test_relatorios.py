from math import isclose

import pytest

from custeio.domain.errors import ValidationError
from custeio.domain.models import CentroCusto, EntradaVenda, Ingrediente, Menu, Plataforma


def _seed_vendas(s):
    s.cadastrar_menu(Menu("caipirinha", "Caipirinha"))
    s.definir_receita("caipirinha", "Lime", 2)
    s.cadastrar_plataforma(Plataforma("ifood", 25))
    # L1 a 2.0: cogs 4.0 por caipirinha enquanto durar
    s.registrar_venda(EntradaVenda("caipirinha", 1, 10.0, data="2024-01-10"))
    s.registrar_venda(EntradaVenda("caipirinha", 2, 10.0, plataforma="ifood", data="2024-01-10"))
    s.registrar_venda(EntradaVenda("caipirinha", 1, 12.0, data="2024-02-03"))
    s.registrar_desperdicio("Lime", 1, data="2024-02-04")
    return s


def test_relatorio_vendas_totais(lime):
    _seed_vendas(lime)
    rel = lime.relatorio_vendas()
    t = rel["totais"]
    assert t["qtd"] == 4
    assert t["bruto"] == 42.0
    assert t["liquido"] == 10.0 + 15.0 + 12.0
    assert t["cogs"] == 16.0
    assert t["lucro"] == 37.0 - 16.0
    assert isclose(t["gp_pct"], (37.0 - 16.0) / 37.0 * 100)
    assert t["desperdicio"] == 2.0


def test_relatorio_vendas_por_dia_e_por_mes(lime):
    _seed_vendas(lime)
    por_dia = lime.relatorio_vendas(granularidade="dia")["periodos"]
    assert list(por_dia["periodo"]) == ["2024-01-10", "2024-02-03", "2024-02-04"]
    assert list(por_dia["desperdicio"]) == [0.0, 0.0, 2.0]

    por_mes = lime.relatorio_vendas(granularidade="mes")["periodos"]
    assert list(por_mes["periodo"]) == ["2024-01", "2024-02"]
    assert list(por_mes["qtd"]) == [3.0, 1.0]
    assert list(por_mes["desperdicio"]) == [0.0, 2.0]


def test_relatorio_vendas_filtra_periodo_e_quebra(lime):
    _seed_vendas(lime)
    rel = lime.relatorio_vendas(inicio="2024-01-01", fim="31/01/2024")
    assert rel["fim"] == "2024-01-31"
    assert rel["totais"]["qtd"] == 3
    assert rel["totais"]["desperdicio"] == 0.0
    plat = rel["por_plataforma"].set_index("plataforma")
    assert plat.loc["ifood", "liquido"] == 15.0
    assert plat.loc["loja", "bruto"] == 10.0
    assert list(rel["por_menu"]["nome"]) == ["Caipirinha"]


def test_relatorio_vendas_vazio(sistema):
    rel = sistema.relatorio_vendas(inicio="2024-01-01", fim="2024-01-31")
    assert rel["totais"]["qtd"] == 0.0
    assert rel["totais"]["gp_pct"] == 0.0
    assert rel["periodos"].empty


def test_relatorio_vendas_parametros_invalidos(sistema):
    with pytest.raises(ValidationError):
        sistema.relatorio_vendas(granularidade="ano")
    with pytest.raises(ValidationError):
        sistema.relatorio_vendas(inicio="2024-02-01", fim="2024-01-01")


def test_relatorio_estoque_baixo(lime):
    lime.cadastrar_ingrediente(Ingrediente("gelo", "Gelo", estoque_minimo=1))
    lime.cadastrar_ingrediente(Ingrediente("acucar", "Açúcar", "g", "kg", 1000, 5000))
    lime.registrar_compra("acucar", 2, 10.0)
    lime.cadastrar_ingrediente(Ingrediente("hortela", "Hortelã", estoque_minimo=1))
    lime.registrar_compra("hortela", 5, 5.0)

    cols, linhas, msg = lime.relatorio_estoque_baixo()
    assert cols[0] == "ingrediente_id"
    assert msg is None
    assert [(l[0], l[5]) for l in linhas] == [("gelo", "ZERADO"), ("acucar", "BAIXO")]
    assert linhas[0][6] is None
    assert isclose(linhas[1][6], 0.005)


def test_relatorio_estoque_baixo_vazio(lime):
    _, linhas, msg = lime.relatorio_estoque_baixo()
    assert linhas == []
    assert msg == "Nenhum ingrediente abaixo do mínimo."


def _seed_custos_do_periodo(s):
    s.cadastrar_centro(CentroCusto("cozinha", "Cozinha", "hora", 15))
    s.registrar_mao_de_obra("cozinha", 2, data="2024-01-10")
    s.registrar_mao_de_obra("cozinha", 1, data="2024-03-01")
    s.cadastrar_ingrediente(Ingrediente("copo", "Copo"))
    s.registrar_compra("copo", 10, 5.0, data="2024-01-01")
    p = s.abrir_producao("caipirinha", 4, data="2024-02-03")
    s.usar_embalagem(p.producao_id, "copo", 4)


def test_relatorio_vendas_com_mao_de_obra_e_embalagem(lime):
    _seed_vendas(lime)
    _seed_custos_do_periodo(lime)
    rel = lime.relatorio_vendas(granularidade="mes")

    t = rel["totais"]
    assert t["lucro"] == 21.0
    assert t["mao_obra"] == 45.0
    assert t["embalagem"] == 2.0
    assert t["desperdicio"] == 2.0
    assert t["lucro_apos_mao_obra"] == 21.0 - 45.0 - 2.0
    assert t["lucro_final"] == 21.0 - 45.0 - 2.0 - 2.0

    per = rel["periodos"]
    assert list(per["periodo"]) == ["2024-01", "2024-02", "2024-03"]
    assert list(per["mao_obra"]) == [30.0, 0.0, 15.0]
    assert list(per["embalagem"]) == [0.0, 2.0, 0.0]
    assert list(per["lucro_final"]) == [13.0 - 30.0, 8.0 - 2.0 - 2.0, -15.0]


def test_relatorio_vendas_custos_respeitam_periodo(lime):
    _seed_vendas(lime)
    _seed_custos_do_periodo(lime)
    t = lime.relatorio_vendas(inicio="2024-02-01", fim="2024-02-28")["totais"]
    assert (t["mao_obra"], t["embalagem"], t["desperdicio"]) == (0.0, 2.0, 2.0)
