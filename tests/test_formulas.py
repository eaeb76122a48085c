from math import isclose

import pytest

from custeio.domain.formulas import (
    batch_cost,
    cost_per_stock_unit,
    gross_margin_pct,
    net_unit_price,
    plan_fifo,
    stock_quantity,
    suggested_price,
    unit_price,
    weighted_cost,
)


def test_conversao_compra_para_estoque():
    # 2 kg a 30,00 com 1 kg = 1000 g
    assert stock_quantity(2, 1000) == 2000.0
    assert isclose(cost_per_stock_unit(30.0, 2, 1000), 0.015)
    assert unit_price(30.0, 2) == 15.0


@pytest.mark.parametrize("qty,ratio", [(0, 1), (-1, 1), (1, 0), (1, -2)])
def test_conversao_rejeita_quantidade_ou_razao_invalidas(qty, ratio):
    with pytest.raises(ValueError):
        cost_per_stock_unit(10.0, qty, ratio)


def test_plan_fifo_parcial_entre_lotes():
    takes, falta = plan_fifo([("L1", 10, 2.0), ("L2", 20, 2.5)], 15)
    assert takes == [("L1", 10.0, 2.0), ("L2", 5.0, 2.5)]
    assert falta == 0.0
    total, medio = weighted_cost(takes)
    assert isclose(total, 32.5)
    assert isclose(medio, 32.5 / 15)


def test_plan_fifo_pula_lotes_vazios_e_informa_falta():
    takes, falta = plan_fifo([("L0", 0, 1.0), ("L1", 10, 2.0)], 12)
    assert takes == [("L1", 10.0, 2.0)]
    assert isclose(falta, 2.0)


def test_plan_fifo_tolera_residuo_de_ponto_flutuante():
    _, falta = plan_fifo([("L1", 0.1, 1.0), ("L2", 0.2, 1.0)], 0.3)
    assert falta == 0.0


def test_preco_sugerido():
    assert isclose(suggested_price(4.0, 0.6), 10.0)
    assert suggested_price(4.0, 0.0) == 4.0
    for gp in (1.0, 1.5, -0.01):
        with pytest.raises(ValueError):
            suggested_price(4.0, gp)


def test_preco_liquido_com_comissao():
    assert isclose(net_unit_price(20.0, 30), 14.0)
    assert net_unit_price(20.0, None) == 20.0


def test_batch_cost_componentes():
    c = batch_cost(
        recipe_cost_per_serve=4.0, plan_qty=10, actual_qty=9, hours=2, labor_rate=15,
        oh_per_hour=5, oh_per_kg=1, weight_kg=4, pack_per_serve=0.5,
    )
    assert c["recipe"] == 40.0
    assert c["packaging"] == 5.0
    assert c["labor"] == 30.0
    assert c["overhead"] == 14.0
    assert c["total"] == 89.0
    assert isclose(c["per_serve"], 89.0 / 9)
    assert c["variance"] == -1.0


def test_batch_cost_sem_quantidade_real_divide_por_um():
    c = batch_cost(2.0, 5, 0, 0, 0, 0, 0, 0)
    assert c["per_serve"] == c["total"] == 10.0


def test_batch_cost_mao_de_obra_por_unidades():
    c = batch_cost(0, 10, 10, hours=3, labor_rate=2, oh_per_hour=0, oh_per_kg=0, weight_kg=8, labor_units=8)
    assert c["labor"] == 16.0


def test_margem_bruta():
    assert isclose(gross_margin_pct(100, 40), 60.0)
    assert gross_margin_pct(0, 10) == 0.0
