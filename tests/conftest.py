from pathlib import Path

import pytest

from custeio.domain.models import Ingrediente
from custeio.sistema import Sistema


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "custeio_test.sqlite")


@pytest.fixture
def sistema(db_path):
    s = Sistema.abrir(db_path, ttl=300)
    yield s
    s.shutdown()


@pytest.fixture
def lime(sistema):
    """Lime: L1 (2024-01-01, 10 un a 2.0) e L2 (2024-01-05, 20 un a 2.5)."""
    sistema.cadastrar_ingrediente(Ingrediente("Lime", "Lime", "un", "un", 1.0, 5.0))
    sistema.registrar_compra("Lime", 10, 20.0, data="2024-01-01", lote_id="L1")
    sistema.registrar_compra("Lime", 20, 50.0, data="2024-01-05", lote_id="L2")
    return sistema
