# custeio/infra/cache.py
"""
Cache read-through com TTL na frente do gateway.

- get_or_load(key, loader, ttl=None): entrada viva -> devolve; carga em voo
  para a mesma chave -> espera por ela (single-flight); senão chama o loader.
- Falha transitória do loader (BackendUnavailableError) é re-tentada com
  backoff; esgotadas as tentativas, devolve a entrada expirada (se houver)
  com StaleDataWarning, senão propaga o erro.
- invalidate / invalidate_prefix removem as entradas e descartam a carga em
  voo da chave: uma carga iniciada antes da invalidação não grava o resultado.
- Uma carga que leu dado expirado de outra chave (cargas aninhadas, ex.:
  snapshot montado a partir de compras) devolve o valor mas não o grava.

Só guarda estado para chaves com entrada ou carga em voo. Entradas expiradas
ficam até a próxima carga ou invalidação, como reserva para falhas do backend.

Relógio e sleep são injetáveis (testes determinísticos).
"""

from __future__ import annotations

import threading
import time
import warnings
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from custeio.config import DEFAULTS
from custeio.domain.errors import BackendUnavailableError, StaleDataWarning
from .logger import log_cache_event
from .retry import com_retentativas


@dataclass
class EntradaCache:
    chave: str
    valor: Any
    criado_em: float
    ttl: float

    def expirada(self, agora: float) -> bool:
        return agora - self.criado_em >= self.ttl


@dataclass
class _CargaEmVoo:
    pronto: threading.Event = field(default_factory=threading.Event)
    valor: Any = None
    erro: Optional[BaseException] = None
    idade_stale: Optional[float] = None
    descartada: bool = False  # invalidada durante a carga
    derivada_de_stale: bool = False  # o loader leu dado expirado de outra chave


class CacheLayer:
    """Cache em memória por processo, com ciclo de vida explícito."""

    def __init__(
        self,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        max_tentativas: int = DEFAULTS.backend_max_tentativas,
        backoff_base: float = DEFAULTS.backend_backoff_base,
    ):
        self._clock = clock
        self._sleep = sleep
        self.max_tentativas = max_tentativas
        self.backoff_base = backoff_base
        self._mutex = threading.Lock()
        self._entradas: Dict[str, EntradaCache] = {}
        self._em_voo: Dict[str, _CargaEmVoo] = {}
        self._local = threading.local()
        self.stats = {"hits": 0, "misses": 0, "loads": 0, "waits": 0, "stale": 0}
        self.ttl = DEFAULTS.cache_ttl_segundos
        self._ativo = False
        if ttl is not None:
            self.init(ttl)

    # ---------- ciclo de vida ----------

    def init(self, ttl: Optional[float] = None) -> "CacheLayer":
        if ttl is not None:
            if ttl < 0:
                raise ValueError("ttl must be >= 0")
            self.ttl = float(ttl)
        self._ativo = True
        log_cache_event("init", "*", level="info", ttl=self.ttl)
        return self

    def shutdown(self) -> None:
        with self._mutex:
            self._ativo = False
            self._entradas.clear()
            # cargas em voo terminam para quem já espera, mas não são gravadas
            for voo in self._em_voo.values():
                voo.descartada = True
            self._em_voo.clear()
        log_cache_event("shutdown", "*", level="info")

    @property
    def ativo(self) -> bool:
        return self._ativo

    # ---------- leitura ----------

    def get_or_load(self, key: str, loader: Callable[[], Any], ttl: Optional[float] = None) -> Any:
        if not self._ativo:
            raise RuntimeError("CacheLayer não inicializado (chame init) ou já encerrado")
        ttl = self.ttl if ttl is None else float(ttl)

        with self._mutex:
            entrada = self._entradas.get(key)
            if entrada is not None and not entrada.expirada(self._clock()):
                self.stats["hits"] += 1
                log_cache_event("hit", key)
                return entrada.valor
            voo = self._em_voo.get(key)
            lider = voo is None
            if lider:
                voo = _CargaEmVoo()
                self._em_voo[key] = voo
                self.stats["misses"] += 1
            else:
                self.stats["waits"] += 1

        if not lider:
            log_cache_event("wait", key)
            voo.pronto.wait()
            if voo.erro is not None:
                raise voo.erro
            if voo.idade_stale is not None:
                self._avisar_stale(key, voo.idade_stale)
            if voo.idade_stale is not None or voo.derivada_de_stale:
                self._marcar_stale_nas_cargas()
            return voo.valor

        log_cache_event("miss", key)
        pilha = self._pilha()
        pilha.append(voo)
        try:
            valor = com_retentativas(
                loader,
                tentativas=self.max_tentativas,
                base=self.backoff_base,
                sleep=self._sleep,
                descricao=f"cache:{key}",
            )
        except BackendUnavailableError as e:
            with self._mutex:
                stale = self._entradas.get(key)
                self._encerrar_voo(key, voo)
            if stale is None:
                log_cache_event("load_failed", key, level="error", erro=str(e))
                voo.erro = e
                voo.pronto.set()
                raise
            idade = self._clock() - stale.criado_em
            self.stats["stale"] += 1
            voo.valor = stale.valor
            voo.idade_stale = idade
            voo.pronto.set()
            self._marcar_stale_nas_cargas()
            self._avisar_stale(key, idade)
            return stale.valor
        except BaseException as e:
            with self._mutex:
                self._encerrar_voo(key, voo)
            voo.erro = e
            voo.pronto.set()
            raise
        finally:
            pilha.pop()

        with self._mutex:
            self.stats["loads"] += 1
            if not self._ativo or voo.descartada:
                log_cache_event("discard", key)
            elif voo.derivada_de_stale:
                log_cache_event("discard_stale", key, level="warning")
            else:
                self._entradas[key] = EntradaCache(key, valor, self._clock(), ttl)
            self._encerrar_voo(key, voo)
        voo.valor = valor
        voo.pronto.set()
        return valor

    def _pilha(self) -> List[_CargaEmVoo]:
        # cargas em andamento nesta thread, da mais externa para a mais interna
        pilha = getattr(self._local, "pilha", None)
        if pilha is None:
            pilha = self._local.pilha = []
        return pilha

    def _marcar_stale_nas_cargas(self) -> None:
        for voo in self._pilha():
            voo.derivada_de_stale = True

    def _encerrar_voo(self, key: str, voo: _CargaEmVoo) -> None:
        # chamado com _mutex; uma invalidação pode já ter desligado este voo
        if self._em_voo.get(key) is voo:
            del self._em_voo[key]

    def _avisar_stale(self, key: str, idade: float) -> None:
        log_cache_event("stale", key, level="warning", idade_segundos=round(idade, 3))
        warnings.warn(StaleDataWarning(key, idade), stacklevel=3)

    def peek(self, key: str) -> Optional[EntradaCache]:
        """Entrada atual (viva ou expirada) sem disparar carga."""
        with self._mutex:
            return self._entradas.get(key)

    def chaves_rastreadas(self) -> int:
        with self._mutex:
            return len(set(self._entradas) | set(self._em_voo))

    # ---------- invalidação ----------

    def _invalidar_locked(self, key: str) -> None:
        self._entradas.pop(key, None)
        voo = self._em_voo.pop(key, None)
        if voo is not None:
            voo.descartada = True

    def invalidate(self, key: str) -> None:
        with self._mutex:
            self._invalidar_locked(key)
        log_cache_event("invalidate", key)

    def invalidate_prefix(self, prefix: str) -> int:
        """Invalida toda chave que começa com `prefix`. Retorna quantas."""
        with self._mutex:
            chaves = {k for k in (*self._entradas, *self._em_voo) if k.startswith(prefix)}
            for k in chaves:
                self._invalidar_locked(k)
        log_cache_event("invalidate_prefix", prefix, chaves=len(chaves))
        return len(chaves)
