# custeio/sistema.py
"""
Fachada do custeio: liga gateway, cache, locks e casos de uso.

    with Sistema.abrir("custeio.db") as s:
        s.registrar_compra("lima", 10, 20.0)
        res = s.calcular_custo_menu("caipirinha", 0.6)

Condições recuperáveis voltam em ``Resultado.avisos``; erros de entrada,
de regra de negócio e falhas de backend sobem como exceções tipadas.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from custeio.config import DB_PATH, DEFAULTS
from custeio.domain.models import (
    CentroCusto, CustoMenu, Desperdicio, EntradaProducao, EntradaVenda, Ingrediente,
    ItemReceita, Lote, Menu, Plataforma, Producao, RegistroMaoObra, Resultado, ResultadoConsumo,
    ResultadoProducao, SnapshotIngrediente, Venda,
)
from custeio.infra.cache import CacheLayer
from custeio.infra.gateway import SqliteGateway
from custeio.infra.locks import MemoryLockProvider
from custeio.infra.logger import log_system_event
from custeio.infra.migrations import apply_migrations
from custeio.infra.repositories import Repositorios
from custeio.usecases.custo_menu import MotorCusto
from custeio.usecases.livro_lotes import LivroLotes
from custeio.usecases.producao import CusteioProducao
from custeio.usecases.relatorios import relatorio_estoque_baixo, relatorio_vendas


class Sistema:
    def __init__(
        self,
        gateway: SqliteGateway,
        cache: CacheLayer,
        locks: Optional[MemoryLockProvider] = None,
    ):
        self.gateway = gateway
        self.cache = cache
        self.locks = locks or MemoryLockProvider()
        self.repos = Repositorios(gateway, cache)
        self.livro = LivroLotes(gateway, cache, self.locks, self.repos)
        self.motor = MotorCusto(self.livro)
        self.producao = CusteioProducao(self.livro, self.motor)

    @classmethod
    def abrir(
        cls,
        db_path: str = DB_PATH,
        ttl: Optional[float] = None,
        migrar: bool = True,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        locks: Optional[MemoryLockProvider] = None,
    ) -> "Sistema":
        if migrar:
            apply_migrations(db_path)
        cache = CacheLayer(clock=clock, sleep=sleep).init(DEFAULTS.cache_ttl_segundos if ttl is None else ttl)
        log_system_event("sistema_aberto", {"db_path": db_path, "ttl": cache.ttl})
        return cls(SqliteGateway(db_path), cache, locks)

    def shutdown(self) -> None:
        self.cache.shutdown()
        log_system_event("sistema_encerrado", {"db_path": self.gateway.db_path})

    def __enter__(self) -> "Sistema":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()

    # ---------- cadastros ----------

    def cadastrar_ingrediente(self, ing: Ingrediente) -> Ingrediente:
        self.repos.ingredientes.upsert(ing)
        return ing

    def cadastrar_menu(self, menu: Menu) -> Menu:
        self.repos.menus.upsert(menu)
        return menu

    def definir_receita(self, menu_id: str, ingrediente_id: str, qtd_por_porcao: float) -> ItemReceita:
        item = ItemReceita(menu_id, ingrediente_id, float(qtd_por_porcao))
        self.repos.receitas.upsert(item)
        return item

    def cadastrar_plataforma(self, plat: Plataforma) -> Plataforma:
        self.repos.plataformas.upsert(plat)
        return plat

    def cadastrar_centro(self, centro: CentroCusto) -> CentroCusto:
        self.repos.centros.upsert(centro)
        return centro

    def definir_params(self, items: Iterable[Tuple[str, Any]]) -> None:
        self.repos.params.set_many(items)

    def params(self) -> Dict[str, str]:
        return dict(self.repos.params.get_all())

    # ---------- operações ----------

    def registrar_compra(self, ingrediente_id: str, qtd_compra: float, preco_total: float, **kw) -> Resultado[Lote]:
        return Resultado(self.livro.registrar_compra(ingrediente_id, qtd_compra, preco_total, **kw))

    def consumir(self, ingrediente_id: str, qtd: float, prazo: Optional[float] = None) -> Resultado[ResultadoConsumo]:
        return Resultado(self.livro.consumir(ingrediente_id, qtd, prazo=prazo))

    def registrar_desperdicio(self, ingrediente_id: str, qtd: float, **kw) -> Resultado[Desperdicio]:
        return Resultado(self.livro.registrar_desperdicio(ingrediente_id, qtd, **kw))

    def registrar_venda(self, entrada: EntradaVenda, prazo: Optional[float] = None) -> Resultado[Venda]:
        return self.motor.registrar_venda(entrada, prazo=prazo)

    def calcular_custo_menu(self, menu_id: str, gp_alvo: Optional[float] = None) -> Resultado[CustoMenu]:
        return self.motor.calcular_custo_menu(menu_id, gp_alvo)

    def calcular_producao(self, entrada: EntradaProducao, prazo: Optional[float] = None) -> Resultado[ResultadoProducao]:
        return self.producao.calcular_producao(entrada, prazo=prazo)

    def abrir_producao(self, menu_id: str, qtd_planejada: float, **kw) -> Producao:
        return self.producao.abrir_producao(menu_id, qtd_planejada, **kw)

    def finalizar_producao(self, producao_id: str, qtd_real: float, **kw) -> Resultado[ResultadoProducao]:
        return self.producao.finalizar_producao(producao_id, qtd_real, **kw)

    def registrar_mao_de_obra(self, centro_id: str, horas: float, **kw) -> Resultado[RegistroMaoObra]:
        return Resultado(self.producao.registrar_mao_de_obra(centro_id, horas, **kw))

    def usar_embalagem(self, producao_id: str, embalagem_id: str, qtd: float, **kw) -> Resultado[ResultadoConsumo]:
        return Resultado(self.producao.usar_embalagem(producao_id, embalagem_id, qtd, **kw))

    def snapshot_ingrediente(self, ingrediente_id: str) -> SnapshotIngrediente:
        return self.livro.snapshot_ingrediente(ingrediente_id)

    def custo_atual(self, ingrediente_id: str) -> float:
        return self.livro.custo_atual(ingrediente_id)

    def invalidate(self, key: str) -> None:
        self.cache.invalidate(key)

    def invalidate_prefix(self, prefix: str) -> int:
        return self.cache.invalidate_prefix(prefix)

    # ---------- relatórios ----------

    def relatorio_vendas(self, inicio: Any = None, fim: Any = None, granularidade: str = "dia") -> Dict[str, Any]:
        return relatorio_vendas(self.repos, inicio, fim, granularidade)

    def relatorio_estoque_baixo(self):
        return relatorio_estoque_baixo(self.livro)
