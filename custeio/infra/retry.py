# custeio/infra/retry.py
"""
Re-tentativa com backoff exponencial para erros transitórios.

Usado na fronteira do cache (carga do backend) e nas escritas do livro de
lotes. Erros de validação e de regra de negócio NUNCA passam por aqui.
"""

from __future__ import annotations

import time
from typing import Callable, Tuple, Type, TypeVar

from custeio.domain.errors import BackendUnavailableError
from custeio.infra.logger import log_system_event

T = TypeVar("T")


def backoff_delay(tentativa: int, base: float, teto: float = 5.0) -> float:
    """Atraso antes da tentativa seguinte: base * 2**(tentativa-1), limitado a `teto`."""
    return min(teto, base * (2 ** (tentativa - 1)))


def com_retentativas(
    fn: Callable[[], T],
    tentativas: int,
    base: float,
    transitorios: Tuple[Type[BaseException], ...] = (BackendUnavailableError,),
    sleep: Callable[[float], None] = time.sleep,
    descricao: str = "operacao",
) -> T:
    """Executa `fn` re-tentando apenas exceções `transitorios`.

    Após `tentativas` falhas a última exceção é propagada.
    """
    tentativas = max(1, int(tentativas))
    tentativa = 0
    while True:
        tentativa += 1
        try:
            return fn()
        except transitorios as e:
            if tentativa >= tentativas:
                log_system_event(
                    "retry_exhausted",
                    {"operacao": descricao, "tentativas": tentativa, "erro": str(e)},
                    level="error",
                )
                raise
            delay = backoff_delay(tentativa, base)
            log_system_event(
                "retry_scheduled",
                {"operacao": descricao, "tentativa": tentativa, "delay": delay, "erro": str(e)},
                level="warning",
            )
            sleep(delay)
