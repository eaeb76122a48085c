# custeio/infra/locks.py
"""
Locks consultivos exclusivos por chave (ingrediente).

Provedor em memória: um `threading.Lock` por chave, válido para um único
processo. Cada tentativa espera até `timeout` segundos; entre tentativas há
backoff exponencial. Esgotadas as tentativas -> LockTimeoutError.

`prazo` (valor de `time.monotonic`) é conferido antes de cada tentativa:
passado o prazo, nada é adquirido.

O registro de uma chave vive enquanto houver quem segure ou espere o lock;
o último a sair remove a entrada, então o dicionário só guarda chaves em uso.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from custeio.config import DEFAULTS
from custeio.domain.errors import LockTimeoutError
from .logger import log_system_event
from .retry import backoff_delay


@dataclass
class _Reserva:
    lock: threading.Lock = field(default_factory=threading.Lock)
    usuarios: int = 0


class MemoryLockProvider:
    def __init__(
        self,
        timeout: float = DEFAULTS.lock_timeout_segundos,
        max_tentativas: int = DEFAULTS.lock_max_tentativas,
        backoff_base: float = DEFAULTS.lock_backoff_base,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.timeout = timeout
        self.max_tentativas = max(1, int(max_tentativas))
        self.backoff_base = backoff_base
        self._sleep = sleep
        self._clock = clock
        self._mutex = threading.Lock()
        self._locks: Dict[str, _Reserva] = {}

    def _reservar(self, chave: str) -> threading.Lock:
        with self._mutex:
            reserva = self._locks.get(chave)
            if reserva is None:
                reserva = self._locks[chave] = _Reserva()
            reserva.usuarios += 1
            return reserva.lock

    def _devolver(self, chave: str) -> None:
        # só depois de soltar o lock: quem chegar depois cria um lock novo
        with self._mutex:
            reserva = self._locks[chave]
            reserva.usuarios -= 1
            if reserva.usuarios == 0:
                del self._locks[chave]

    def _obter(self, chave: str, prazo: Optional[float]) -> threading.Lock:
        lk = self._reservar(chave)
        for tentativa in range(1, self.max_tentativas + 1):
            if prazo is not None and self._clock() >= prazo:
                self._devolver(chave)
                log_system_event("lock_deadline", {"chave": chave, "tentativa": tentativa}, level="warning")
                raise LockTimeoutError(chave, tentativa - 1)
            if lk.acquire(timeout=self.timeout):
                return lk
            if tentativa < self.max_tentativas:
                self._sleep(backoff_delay(tentativa, self.backoff_base))
        self._devolver(chave)
        log_system_event("lock_timeout", {"chave": chave, "tentativas": self.max_tentativas}, level="error")
        raise LockTimeoutError(chave, self.max_tentativas)

    def _soltar(self, chave: str, lk: threading.Lock) -> None:
        lk.release()
        self._devolver(chave)

    def locked(self, chave: str) -> bool:
        with self._mutex:
            reserva = self._locks.get(chave)
            return reserva is not None and reserva.lock.locked()

    def chaves_em_uso(self) -> int:
        with self._mutex:
            return len(self._locks)

    @contextmanager
    def acquire(self, chave: str, prazo: Optional[float] = None) -> Iterator[None]:
        lk = self._obter(chave, prazo)
        try:
            yield
        finally:
            self._soltar(chave, lk)

    @contextmanager
    def acquire_many(self, chaves: Iterable[str], prazo: Optional[float] = None) -> Iterator[None]:
        """Adquire várias chaves em ordem crescente (evita deadlock)."""
        obtidos: List[tuple] = []
        try:
            for chave in sorted(set(chaves)):
                obtidos.append((chave, self._obter(chave, prazo)))
            yield
        finally:
            for chave, lk in reversed(obtidos):
                self._soltar(chave, lk)
