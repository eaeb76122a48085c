import json
from pathlib import Path

from typer.testing import CliRunner

from custeio.adapters.cli import app

runner = CliRunner()


def _run(db_path, *args):
    result = runner.invoke(app, [*args, "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    return result


def _seed(db_path):
    _run(db_path, "migrate")
    _run(db_path, "ingrediente", "add", "lima", "--nome", "Lima", "--minimo", "5")
    _run(db_path, "compra", "lima", "10", "20", "--data", "2024-01-01")
    _run(db_path, "compra", "lima", "20", "50", "--data", "2024-01-05")
    _run(db_path, "menu", "add", "caipirinha", "--nome", "Caipirinha")
    _run(db_path, "menu", "receita", "caipirinha", "lima", "2")
    _run(db_path, "plataforma", "add", "ifood", "--comissao-pct", "30")


def test_cli_migrate_e_cadastro(tmp_path: Path):
    db_path = tmp_path / "custeio_test.sqlite"
    result = _run(db_path, "migrate")
    assert "Migrações aplicadas" in result.output

    result = _run(db_path, "ingrediente", "add", "lima", "--nome", "Lima", "--razao", "10")
    assert ">> Ingrediente lima salvo." in result.output


def test_cli_params_set_e_show(tmp_path: Path):
    db_path = tmp_path / "custeio_test.sqlite"
    _run(db_path, "migrate")
    result = runner.invoke(app, ["params", "set", "--db", str(db_path)])
    assert result.exit_code == 1

    _run(db_path, "params", "set", "--pack-per-serve", "0.75", "--oh-per-hour", "12")
    result = _run(db_path, "params", "show")
    assert "pack_per_serve" in result.output
    assert "0,75" in result.output


def test_cli_venda_e_relatorio_json(tmp_path: Path):
    db_path = tmp_path / "custeio_test.sqlite"
    _seed(db_path)
    result = _run(db_path, "venda", "caipirinha", "3", "20", "--plataforma", "ifood", "--data", "2024-01-07")
    assert "Venda Registrada" in result.output

    result = _run(db_path, "rel", "vendas", "--por", "mes", "--json")
    data = json.loads(result.stdout)
    assert data["totais"]["cogs"] == 12.0
    assert data["totais"]["liquido"] == 42.0
    assert [p["periodo"] for p in data["periodos"]] == ["2024-01"]


def test_cli_estoque_custo_menu_e_consumo(tmp_path: Path):
    db_path = tmp_path / "custeio_test.sqlite"
    _seed(db_path)
    result = _run(db_path, "custo-menu", "caipirinha", "--gp", "0.6")
    assert "preco_sugerido" in result.output

    result = _run(db_path, "consumir", "lima", "15")
    assert "32,50" in result.output

    result = _run(db_path, "estoque", "lima")
    assert "Saldo: 15,00" in result.output


def test_cli_estoque_insuficiente_sai_com_erro(tmp_path: Path):
    db_path = tmp_path / "custeio_test.sqlite"
    _seed(db_path)
    result = runner.invoke(app, ["consumir", "lima", "31", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "INSUFFICIENT_STOCK" in result.output


def test_cli_producao_abrir_e_finalizar(tmp_path: Path):
    db_path = tmp_path / "custeio_test.sqlite"
    _seed(db_path)
    _run(db_path, "centro", "add", "cozinha", "--nome", "Cozinha", "--taxa", "15")
    result = _run(db_path, "producao", "abrir", "caipirinha", "5", "--data", "2024-01-08")
    producao_id = result.output.split()[2]
    assert producao_id.startswith("BATCH-")

    result = _run(db_path, "producao", "finalizar", producao_id, "5", "--horas", "1",
                  "--centro", "cozinha", "--comprometida")
    assert "finalizada" in result.output

    result = runner.invoke(app, ["producao", "finalizar", producao_id, "5", "--db", str(db_path)])
    assert result.exit_code == 1


def test_cli_rel_estoque_baixo(tmp_path: Path):
    db_path = tmp_path / "custeio_test.sqlite"
    _seed(db_path)
    result = _run(db_path, "rel", "estoque-baixo")
    assert "Nenhum ingrediente abaixo do mínimo." in result.output


def test_cli_mao_obra_e_embalagem(tmp_path: Path):
    db_path = tmp_path / "custeio_test.sqlite"
    _seed(db_path)
    _run(db_path, "centro", "add", "cozinha", "--nome", "Cozinha", "--taxa", "15")
    result = _run(db_path, "mao-obra", "cozinha", "2", "--data", "2024-01-08")
    assert "30,00" in result.output

    _run(db_path, "ingrediente", "add", "copo", "--nome", "Copo")
    _run(db_path, "compra", "copo", "10", "5", "--data", "2024-01-01")
    producao_id = _run(db_path, "producao", "abrir", "caipirinha", "4", "--data", "2024-01-08").output.split()[2]
    result = _run(db_path, "producao", "embalagem", producao_id, "copo", "4")
    assert "Custo total: 2,00" in result.output

    result = _run(db_path, "rel", "vendas", "--por", "mes", "--json")
    data = json.loads(result.stdout)
    assert data["totais"]["mao_obra"] == 30.0
    assert data["totais"]["embalagem"] == 2.0
