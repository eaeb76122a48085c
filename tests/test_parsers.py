from datetime import date, datetime

import pytest

from custeio.adapters.parsers import normalizar_data, parse_numero, parse_quantidade_raw
from custeio.domain.errors import ValidationError


@pytest.mark.parametrize(
    "txt,exp_num,exp_unit,exp_desc",
    [
        ("2,5 kg", 2.5, "KG", None),
        ("10 un - Unidades", 10.0, "UN", "Unidades"),
        ("500g", 500.0, "G", None),
        ("1.234,5 ml", 1234.5, "ML", None),
        ("", None, None, None),
        (None, None, None, None),
    ],
)
def test_parse_quantidade_raw(txt, exp_num, exp_unit, exp_desc):
    num, unit, desc = parse_quantidade_raw(txt)
    assert (num == exp_num) or (num is None and exp_num is None)
    assert unit == exp_unit
    assert desc == exp_desc


@pytest.mark.parametrize(
    "txt,esperado",
    [("2,5", 2.5), ("1.234,50", 1234.5), ("1,234.50", 1234.5), (" 7 ", 7.0), (3, 3.0), ("", None), ("abc", None)],
)
def test_parse_numero(txt, esperado):
    assert parse_numero(txt) == esperado


def test_normalizar_data_formatos():
    assert normalizar_data("2024-01-05") == "2024-01-05"
    assert normalizar_data("05/01/2024") == "2024-01-05"
    assert normalizar_data("2024-01-05 13:45:00") == "2024-01-05"
    assert normalizar_data(date(2024, 1, 5)) == "2024-01-05"
    assert normalizar_data(datetime(2024, 1, 5, 10, 0)) == "2024-01-05"


def test_normalizar_data_vazia():
    assert normalizar_data(None) == date.today().isoformat()
    assert normalizar_data("", padrao_hoje=False) is None


def test_normalizar_data_invalida():
    with pytest.raises(ValidationError):
        normalizar_data("ontem")
