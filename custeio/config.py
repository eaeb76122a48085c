# custeio/config.py
"""
Configurações globais e valores padrão do sistema de custeio.

Taxas de negócio (razão compra→estoque, centros de custo, overheads e
comissões de plataforma) NÃO ficam aqui: são dados do banco.
"""

import os
from dataclasses import dataclass


# Caminho padrão do banco de dados SQLite
DB_PATH = os.environ.get("CUSTEIO_DB", os.path.join(os.getcwd(), "custeio.db"))


@dataclass
class DefaultConfig:
    """Valores padrão para parâmetros técnicos do sistema."""
    cache_ttl_segundos: float = float(os.environ.get("CUSTEIO_CACHE_TTL", "300"))  # 5 minutos
    lock_timeout_segundos: float = 2.0   # espera máxima por tentativa
    lock_max_tentativas: int = 5
    lock_backoff_base: float = 0.05      # 0.05, 0.1, 0.2, ...
    backend_max_tentativas: int = 3
    backend_backoff_base: float = 0.1
    gp_alvo: float = 0.60                # margem bruta alvo (fração)


# Instância global dos valores padrão
DEFAULTS = DefaultConfig()

# Chaves de overhead gravadas na tabela `params`
OVERHEAD_KEYS = ("pack_per_serve", "oh_per_hour", "oh_per_kg", "oh_per_serve")
