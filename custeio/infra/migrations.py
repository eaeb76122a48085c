# custeio/infra/migrations.py
"""
Migrações de schema usando PRAGMA user_version.

V1: tabelas base (uma tabela lógica por entidade)
V2: nota do fornecedor na compra, índices de consulta FIFO e plataforma "loja"
V3: apontamento de mão de obra (mao_de_obra)
"""

from __future__ import annotations

from typing import List
from .db import connect


SCHEMA_V1: List[str] = [
    # Parâmetros K/V (overheads e afins)
    """
    CREATE TABLE IF NOT EXISTS params (
        chave TEXT PRIMARY KEY,
        valor TEXT
    );
    """,
    # Cadastro de ingredientes
    """
    CREATE TABLE IF NOT EXISTS ingredientes (
        id TEXT PRIMARY KEY,
        nome TEXT NOT NULL,
        unidade_estoque TEXT,
        unidade_compra TEXT,
        razao_compra_estoque REAL NOT NULL DEFAULT 1 CHECK (razao_compra_estoque > 0),
        estoque_minimo REAL DEFAULT 0
    );
    """,
    # Compras + lotes (1:1); qtd_restante é o único campo mutável
    """
    CREATE TABLE IF NOT EXISTS compras (
        lote_id TEXT PRIMARY KEY,
        data TEXT NOT NULL,
        ingrediente_id TEXT NOT NULL,
        qtd_compra REAL NOT NULL,
        unidade TEXT,
        preco_total REAL NOT NULL,
        preco_unitario REAL,
        qtd_estoque REAL NOT NULL,
        custo_unitario REAL NOT NULL,
        qtd_restante REAL NOT NULL CHECK (qtd_restante >= 0),
        FOREIGN KEY (ingrediente_id) REFERENCES ingredientes(id)
    );
    """,
    # Cardápio
    """
    CREATE TABLE IF NOT EXISTS menus (
        menu_id TEXT PRIMARY KEY,
        nome TEXT NOT NULL,
        categoria TEXT,
        ativo INTEGER DEFAULT 1,
        preco REAL
    );
    """,
    # Ficha técnica (menu x ingrediente)
    """
    CREATE TABLE IF NOT EXISTS receitas (
        menu_id TEXT NOT NULL,
        ingrediente_id TEXT NOT NULL,
        qtd_por_porcao REAL NOT NULL,
        PRIMARY KEY (menu_id, ingrediente_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS centros_custo (
        centro_id TEXT PRIMARY KEY,
        nome TEXT,
        tipo_taxa TEXT DEFAULT 'hora', -- 'hora' | 'kg' | 'porcao'
        taxa REAL DEFAULT 0
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS plataformas (
        nome TEXT PRIMARY KEY,
        comissao_pct REAL DEFAULT 0
    );
    """,
    # Produções (batches)
    """
    CREATE TABLE IF NOT EXISTS producoes (
        producao_id TEXT PRIMARY KEY,
        data TEXT,
        menu_id TEXT,
        qtd_planejada REAL,
        status TEXT DEFAULT 'ABERTA',
        qtd_real REAL,
        peso_kg REAL,
        horas REAL,
        custo_receita REAL,
        custo_embalagem REAL,
        custo_mao_obra REAL,
        custo_overhead REAL,
        custo_total REAL,
        custo_por_porcao REAL,
        comprometida INTEGER DEFAULT 0,
        nota TEXT
    );
    """,
    # Vendas
    """
    CREATE TABLE IF NOT EXISTS vendas (
        venda_id TEXT PRIMARY KEY,
        data TEXT,
        plataforma TEXT,
        menu_id TEXT,
        qtd REAL,
        preco_unitario REAL,
        liquido_unitario REAL,
        cogs REAL,
        lucro REAL
    );
    """,
    # Linhas de consumo por lote (venda / produção / desperdício)
    """
    CREATE TABLE IF NOT EXISTS cogs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        origem TEXT,
        origem_id TEXT,
        data TEXT,
        ingrediente_id TEXT,
        lote_id TEXT,
        qtd REAL,
        custo_unitario REAL,
        custo_total REAL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS desperdicios (
        desperdicio_id TEXT PRIMARY KEY,
        data TEXT,
        ingrediente_id TEXT,
        qtd REAL,
        custo REAL,
        nota TEXT
    );
    """,
]


def _ensure_column(conn, table: str, column: str, ddl: str) -> None:
    """Adiciona coluna se não existir."""
    cur = conn.execute(f"PRAGMA table_info({table});")
    cols = [r[1] for r in cur.fetchall()]  # r[1] é o nome da coluna
    if column not in cols:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {ddl};")


def _apply_v1(conn) -> None:
    for sql in SCHEMA_V1:
        conn.executescript(sql)


def _apply_v2(conn) -> None:
    _ensure_column(conn, "compras", "nota_fornecedor", "nota_fornecedor TEXT")
    conn.executescript(
        """
        CREATE INDEX IF NOT EXISTS idx_compras_fifo   ON compras(ingrediente_id, data, lote_id);
        CREATE INDEX IF NOT EXISTS idx_vendas_data    ON vendas(data);
        CREATE INDEX IF NOT EXISTS idx_cogs_origem    ON cogs(origem, origem_id);
        CREATE INDEX IF NOT EXISTS idx_receitas_menu  ON receitas(menu_id);
        """
    )
    # Venda no balcão: plataforma padrão, sem comissão
    conn.execute("INSERT OR IGNORE INTO plataformas (nome, comissao_pct) VALUES ('loja', 0);")


def _apply_v3(conn) -> None:
    # Apontamento de mão de obra (horas x taxa por centro de custo)
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS mao_de_obra (
            registro_id TEXT PRIMARY KEY,
            data TEXT NOT NULL,
            centro_id TEXT NOT NULL,
            horas REAL NOT NULL CHECK (horas > 0),
            taxa REAL NOT NULL,
            valor REAL NOT NULL,
            nota TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_mao_de_obra_data ON mao_de_obra(data);
        CREATE INDEX IF NOT EXISTS idx_cogs_data        ON cogs(origem, data);
        """
    )


def apply_migrations(db_path: str) -> None:
    """Aplica migrações incrementais de acordo com PRAGMA user_version."""
    with connect(db_path) as conn:
        ver = conn.execute("PRAGMA user_version;").fetchone()[0] or 0

        if ver < 1:
            _apply_v1(conn)
            conn.execute("PRAGMA user_version = 1;")
            ver = 1

        if ver < 2:
            _apply_v2(conn)
            conn.execute("PRAGMA user_version = 2;")
            ver = 2

        if ver < 3:
            _apply_v3(conn)
            conn.execute("PRAGMA user_version = 3;")
            ver = 3
