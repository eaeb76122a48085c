"""
Políticas de classificação para o estoque de ingredientes.

Este módulo contém funções que encapsulam regras de negócio de
classificação de status e de ordenação FIFO. As funções aqui expostas
são utilizadas pelo livro de lotes e pelos relatórios.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from custeio.domain.models import Lote


def status_por_minimo(estoque: Optional[float], minimo: Optional[float]) -> str:
    """Classifica o estoque de um ingrediente em relação ao mínimo.

    Regras:
        - Se ``estoque`` for ``None``, retorna ``'VERIFICAR'``.
        - ``estoque <= 0`` → ``'ZERADO'``
        - ``estoque < minimo`` → ``'BAIXO'``
        - caso contrário → ``'OK'``

    Args:
        estoque: Quantidade restante somada de todos os lotes.
        minimo: Estoque mínimo cadastrado (``None`` é tratado como 0).

    Returns:
        ``'ZERADO'``, ``'BAIXO'``, ``'OK'`` ou ``'VERIFICAR'``.
    """
    if estoque is None:
        return "VERIFICAR"
    try:
        esto = float(estoque)
        m = float(minimo) if minimo is not None else 0.0
    except (TypeError, ValueError):
        return "VERIFICAR"
    if esto <= 0:
        return "ZERADO"
    if esto < m:
        return "BAIXO"
    return "OK"


def ordenar_fifo(lotes: Iterable[Lote]) -> List[Lote]:
    """Ordena lotes do mais antigo para o mais novo.

    Empates de data são decididos pelo ``lote_id`` (ordem crescente), para
    que o consumo seja determinístico.
    """
    return sorted(lotes, key=lambda l: (str(l.data), str(l.lote_id)))


def lotes_disponiveis(lotes: Iterable[Lote]) -> List[Lote]:
    """Apenas lotes ATIVOS, em ordem FIFO."""
    return [l for l in ordenar_fifo(lotes) if l.qtd_restante > 0]
