"""
Sistema de logging para transações do custeio.

Este módulo configura e fornece loggers para registrar todas as operações
críticas do sistema, incluindo compras, vendas, consumo de lotes, cache e
operações no banco de dados.
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional


# Flag global para habilitar/desabilitar logging
ENABLE_LOGGING = os.environ.get("CUSTEIO_LOGGING", "0").lower() in {"1", "true", "sim"}

# Configuração base dos loggers
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logger(name: str, log_file: str, level: int = logging.INFO) -> logging.Logger:
    """
    Configura um logger específico com arquivo de saída.

    O arquivo só é criado na primeira mensagem (``delay=True``), então
    importar o módulo com o logging desligado não toca o disco.

    Args:
        name: Nome do logger
        log_file: Caminho do arquivo de log
        level: Nível de logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Logger configurado
    """
    log_path = Path(log_file)
    if ENABLE_LOGGING:
        log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    # Remove handlers anteriores (reimportações em testes)
    while logger.handlers:
        logger.removeHandler(logger.handlers[0])

    file_handler = logging.FileHandler(log_file, encoding='utf-8', delay=True)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger

# Diretório base para logs (sobrescrevível por variável de ambiente)
BASE_DIR = Path(__file__).parent.parent
LOGS_DIR = Path(os.environ.get("CUSTEIO_LOG_DIR", str(BASE_DIR / "logs")))

# Loggers específicos para cada operação
transaction_logger = setup_logger('custeio.transactions', str(LOGS_DIR / 'transactions.log'))
compra_logger = setup_logger('custeio.compras', str(LOGS_DIR / 'compras.log'))
venda_logger = setup_logger('custeio.vendas', str(LOGS_DIR / 'vendas.log'))
database_logger = setup_logger('custeio.database', str(LOGS_DIR / 'database.log'))
cache_logger = setup_logger('custeio.cache', str(LOGS_DIR / 'cache.log'))
system_logger = setup_logger('custeio.system', str(LOGS_DIR / 'system.log'))


def log_transaction(operation: str, data: Dict[str, Any], result: Optional[Any] = None, error: Optional[str] = None) -> None:
    """
    Registra uma transação completa no log.

    Args:
        operation: Tipo de operação (compra, venda, consumo, ...)
        data: Dados da transação
        result: Resultado da operação (opcional)
        error: Mensagem de erro (opcional)
    """
    if not ENABLE_LOGGING:
        return
    if error:
        transaction_logger.error(f"TRANSACTION_FAILED: {operation} - {error} - Data: {data}")
    else:
        transaction_logger.info(f"TRANSACTION_SUCCESS: {operation} - Result: {result} - Data: {data}")

def log_compra(action: str, ingrediente_id: str, quantidade: float, lote_id: str = None, **kwargs) -> None:
    """
    Log específico para compras e criação de lotes.

    Args:
        action: Ação realizada (insert, consume, waste)
        ingrediente_id: Código do ingrediente
        quantidade: Quantidade movimentada
        lote_id: Lote afetado (opcional)
        **kwargs: Dados adicionais
    """
    if not ENABLE_LOGGING:
        return
    log_data = {
        "action": action,
        "ingrediente_id": ingrediente_id,
        "quantidade": quantidade,
        "lote_id": lote_id,
        **kwargs
    }
    compra_logger.info(f"COMPRA_{action.upper()}: {log_data}")

def log_venda(action: str, menu_id: str, quantidade: float, **kwargs) -> None:
    """Log específico para vendas."""
    if not ENABLE_LOGGING:
        return
    log_data = {
        "action": action,
        "menu_id": menu_id,
        "quantidade": quantidade,
        **kwargs
    }
    venda_logger.info(f"VENDA_{action.upper()}: {log_data}")

def log_database_operation(table: str, operation: str, affected_rows: int = 0, **kwargs) -> None:
    """
    Log específico para operações no banco de dados.

    Args:
        table: Nome da tabela
        operation: Operação (READ, APPEND, UPDATE, BATCH)
        affected_rows: Número de linhas afetadas
        **kwargs: Dados adicionais
    """
    if not ENABLE_LOGGING:
        return
    log_data = {
        "table": table,
        "operation": operation,
        "affected_rows": affected_rows,
        **kwargs
    }
    database_logger.info(f"DB_{operation}: {log_data}")

def log_cache_event(event: str, key: str, level: str = "debug", **kwargs) -> None:
    """Log para eventos do cache (hit, miss, wait, stale, invalidate)."""
    if not ENABLE_LOGGING:
        return
    log_data = {"key": key, **kwargs}
    log_method = getattr(cache_logger, level.lower(), cache_logger.debug)
    log_method(f"CACHE_{event.upper()}: {log_data}")

def log_system_event(event: str, details: Dict[str, Any] = None, level: str = "info") -> None:
    """
    Log para eventos do sistema.

    Args:
        event: Descrição do evento
        details: Detalhes adicionais (opcional)
        level: Nível do log (info, warning, error)
    """
    if not ENABLE_LOGGING:
        return
    log_data = {
        "event": event,
        "details": details or {}
    }
    log_method = getattr(system_logger, level.lower(), system_logger.info)
    log_method(f"SYSTEM_EVENT: {event} - {log_data}")

def log_file_operation(operation: str, file_path: str, rows_processed: int = 0, **kwargs) -> None:
    """
    Log para operações de arquivo (importação/exportação).

    Args:
        operation: Tipo de operação (import, export)
        file_path: Caminho do arquivo
        rows_processed: Número de linhas processadas
        **kwargs: Dados adicionais
    """
    if not ENABLE_LOGGING:
        return
    log_data = {
        "operation": operation,
        "file_path": file_path,
        "rows_processed": rows_processed,
        "timestamp": datetime.now().isoformat(),
        **kwargs
    }
    system_logger.info(f"FILE_{operation.upper()}: {log_data}")

def get_log_summary(log_type: str = "transactions", lines: int = 100) -> Optional[str]:
    """
    Obtém um resumo dos logs recentes.

    Args:
        log_type: Tipo de log (transactions, compras, vendas, database, cache, system)
        lines: Número de linhas a retornar

    Returns:
        Conteúdo do log como string
    """
    if not ENABLE_LOGGING:
        return None

    log_files = {
        "transactions": LOGS_DIR / "transactions.log",
        "compras": LOGS_DIR / "compras.log",
        "vendas": LOGS_DIR / "vendas.log",
        "database": LOGS_DIR / "database.log",
        "cache": LOGS_DIR / "cache.log",
        "system": LOGS_DIR / "system.log",
    }

    log_file = log_files.get(log_type)
    if not log_file or not log_file.exists():
        return f"Log {log_type} não encontrado."

    try:
        with open(log_file, 'r', encoding='utf-8') as f:
            all_lines = f.readlines()
    except OSError as e:
        return f"Erro ao ler log {log_type}: {str(e)}"
    recent_lines = all_lines[-lines:] if len(all_lines) > lines else all_lines
    return ''.join(recent_lines)
