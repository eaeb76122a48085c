from pathlib import Path

import pytest

from custeio.domain.errors import BackendUnavailableError, ValidationError
from custeio.infra.gateway import SqliteGateway
from custeio.infra.migrations import apply_migrations


def _gateway(tmp_path: Path) -> SqliteGateway:
    db = str(tmp_path / "gw.sqlite")
    apply_migrations(db)
    gw = SqliteGateway(db)
    gw.append_row("ingredientes", {"id": "lima", "nome": "Lima", "razao_compra_estoque": 1})
    return gw


def _lote(lote_id, data="2024-01-01", qtd=10.0):
    return {
        "lote_id": lote_id, "data": data, "ingrediente_id": "lima", "qtd_compra": qtd,
        "unidade": "un", "preco_total": qtd * 2, "preco_unitario": 2.0, "qtd_estoque": qtd,
        "custo_unitario": 2.0, "qtd_restante": qtd,
    }


def test_migracao_semeia_plataforma_loja(tmp_path):
    gw = _gateway(tmp_path)
    assert gw.read_table("plataformas") == [{"nome": "loja", "comissao_pct": 0.0}]


def test_leitura_em_ordem_de_insercao_e_filtro(tmp_path):
    gw = _gateway(tmp_path)
    for lid in ("L2", "L1", "L3"):
        gw.append_row("compras", _lote(lid))
    assert [r["lote_id"] for r in gw.read_table("compras")] == ["L2", "L1", "L3"]
    assert [r["lote_id"] for r in gw.read_table("compras", {"lote_id": "L1"})] == ["L1"]


def test_tabela_ou_coluna_desconhecida(tmp_path):
    gw = _gateway(tmp_path)
    with pytest.raises(ValidationError):
        gw.read_table("nao_existe")
    with pytest.raises(ValidationError):
        gw.append_row("compras", {**_lote("L1"), "hackeado": 1})
    with pytest.raises(ValidationError):
        gw.read_table("compras", {"1=1; --": 1})


def test_update_row_inexistente(tmp_path):
    gw = _gateway(tmp_path)
    with pytest.raises(ValidationError):
        gw.update_row("compras", "L9", {"qtd_restante": 1})


def test_update_rows_tudo_ou_nada(tmp_path):
    gw = _gateway(tmp_path)
    gw.append_row("compras", _lote("L1"))
    with pytest.raises(ValidationError):
        gw.update_rows("compras", [("L1", {"qtd_restante": 0}), ("L9", {"qtd_restante": 0})])
    assert gw.read_table("compras")[0]["qtd_restante"] == 10.0


def test_write_batch_desfaz_tudo_em_violacao(tmp_path):
    gw = _gateway(tmp_path)
    gw.append_row("compras", _lote("L1"))
    with pytest.raises(ValidationError):
        gw.write_batch(
            appends=[("vendas", {"venda_id": "S1", "menu_id": "m", "qtd": 1})],
            updates=[("compras", "L1", {"qtd_restante": -1})],  # CHECK qtd_restante >= 0
        )
    assert gw.read_table("vendas") == []
    assert gw.read_table("compras")[0]["qtd_restante"] == 10.0


def test_chave_composta(tmp_path):
    gw = _gateway(tmp_path)
    gw.append_row("receitas", {"menu_id": "m", "ingrediente_id": "lima", "qtd_por_porcao": 1})
    gw.update_row("receitas", ("m", "lima"), {"qtd_por_porcao": 2})
    assert gw.read_table("receitas")[0]["qtd_por_porcao"] == 2.0
    with pytest.raises(ValidationError):
        gw.update_row("receitas", "m", {"qtd_por_porcao": 3})


def test_arquivo_inacessivel_vira_backend_indisponivel(tmp_path):
    gw = SqliteGateway(str(tmp_path / "nao" / "existe.sqlite"))
    with pytest.raises(BackendUnavailableError):
        gw.read_table("compras")
