from math import isclose
from pathlib import Path

import pandas as pd
import pytest

from custeio.adapters.planilhas import importar_compras, load_compras_from_xlsx
from custeio.domain.errors import ValidationError
from custeio.domain.models import Ingrediente


def _xlsx(tmp_path: Path, linhas, nome="compras.xlsx") -> str:
    path = tmp_path / nome
    pd.DataFrame(linhas).to_excel(path, index=False)
    return str(path)


def test_load_normaliza_cabecalho_numeros_e_datas(tmp_path):
    path = _xlsx(tmp_path, [
        {"Data": "05/01/2024", "Ingrediente ID": "lima", "Qtd Compra": "2,5", "Unidade": "kg",
         "Preço Total": "1.234,50", "Nota Fornecedor": "NF 1", "Rendimento Real": None},
        {"Data": None, "Ingrediente ID": None, "Qtd Compra": None, "Unidade": None,
         "Preço Total": None, "Nota Fornecedor": None, "Rendimento Real": None},
    ])
    rows = load_compras_from_xlsx(path)
    assert len(rows) == 1
    r = rows[0]
    assert r["linha"] == 2
    assert r["ingrediente_id"] == "lima"
    assert r["qtd_compra"] == 2.5
    assert r["preco_total"] == 1234.5
    assert r["nota_fornecedor"] == "NF 1"
    assert r["rendimento_real"] is None


def test_load_sem_colunas_obrigatorias(tmp_path):
    path = _xlsx(tmp_path, [{"ingrediente_id": "lima", "qtd_compra": "1"}])
    with pytest.raises(ValidationError) as exc:
        load_compras_from_xlsx(path)
    assert "preco_total" in str(exc.value)


def test_importar_compras_registra_lotes_e_reporta_erros(sistema, tmp_path):
    sistema.cadastrar_ingrediente(Ingrediente("lima", "Lima", "un", "kg", 10))
    path = _xlsx(tmp_path, [
        {"data": "2024-01-01", "ingrediente_id": "lima", "qtd_compra": "2", "preco_total": "20"},
        {"data": "2024-01-02", "ingrediente_id": "fantasma", "qtd_compra": "1", "preco_total": "5"},
        {"data": "2024-01-03", "ingrediente_id": "lima", "qtd_compra": "0", "preco_total": "5"},
        {"data": "ontem", "ingrediente_id": "lima", "qtd_compra": "1", "preco_total": "5"},
        {"data": "2024-01-05", "ingrediente_id": "lima", "qtd_compra": "1", "preco_total": "12,5"},
    ])
    res = importar_compras(sistema, path)

    assert res["linhas"] == 5
    assert res["importadas"] == 2
    assert [(e["linha"], e["codigo"]) for e in res["erros"]] == [
        (3, "MISSING_INGREDIENT"),
        (4, "VALIDATION_ERROR"),
        (5, "VALIDATION_ERROR"),
    ]
    snap = sistema.snapshot_ingrediente("lima")
    assert [l.lote_id for l in snap.lotes] == res["lotes"]
    assert snap.total_restante == 30
    assert isclose(snap.lotes[1].custo_unitario, 1.25)
