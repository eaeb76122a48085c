# custeio/infra/db.py
"""
Utilidades de conexão SQLite.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator


# Espera do próprio SQLite quando outro processo segura o arquivo
BUSY_TIMEOUT_SEGUNDOS = 5.0


@contextmanager
def connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """
    Context manager para abrir conexão SQLite com:
    - foreign_keys ON
    - row_factory = sqlite3.Row
    - timeout de lock do arquivo (BUSY_TIMEOUT_SEGUNDOS)
    - commit ao sair (rollback em caso de exceção)

    Cada chamada abre a sua conexão; threads diferentes nunca
    compartilham um objeto `sqlite3.Connection`.
    """
    conn = sqlite3.connect(db_path, timeout=BUSY_TIMEOUT_SEGUNDOS)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
