# custeio/usecases/livro_lotes.py
"""
UC: Livro de lotes (FIFO).

Único escritor de `compras.qtd_restante`.

- registrar_compra(): cria Compra + Lote (uma linha em `compras`).
- consumir(): baixa FIFO de um ingrediente (tudo ou nada).
- consumir_varios(): baixa FIFO de vários ingredientes em uma transação,
  com linhas de COGS e registros extras (venda, desperdício, produção).
- registrar_desperdicio(): baixa FIFO registrada como perda.
- snapshot_ingrediente() / preview_custo() / custo_atual(): leituras sem lock.

Seção crítica (por ingrediente):
    lock -> invalida chave "compras:<id>" -> relê lotes -> planeja
    -> grava (uma transação) -> invalida "compras:<id>" e "snapshot:<id>" -> unlock
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import asdict
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from custeio.adapters.parsers import normalizar_data
from custeio.config import DEFAULTS
from custeio.domain import formulas
from custeio.domain.errors import (
    CusteioError, InsufficientStockError, MissingIngredientError, MissingPriceDataError,
    ValidationError,
)
from custeio.domain.models import (
    ORIGEM_AVULSO, ORIGEM_DESPERDICIO, Compra, Desperdicio, Ingrediente, ItemConsumo,
    LinhaCogs, Lote, ResultadoConsumo, SnapshotIngrediente,
)
from custeio.domain.policies import lotes_disponiveis, ordenar_fifo, status_por_minimo
from custeio.infra.cache import CacheLayer
from custeio.infra.gateway import Append, SqliteGateway, Update
from custeio.infra.locks import MemoryLockProvider
from custeio.infra.logger import log_compra, log_transaction
from custeio.infra.repositories import Repositorios, chave_compras, chave_snapshot, compra_to_row
from custeio.infra.retry import com_retentativas

# Recebe os resultados do consumo e devolve registros extras para a mesma
# transação: (tabela, linha) é insert, (tabela, chave, campos) é update.
Registro = Union[Append, Update]
MontarRegistros = Callable[[Dict[str, ResultadoConsumo]], Iterable[Registro]]


_seq_ids = itertools.count(1)
_seq_lock = threading.Lock()
_ultimo_carimbo = ""


def novo_id(prefixo: str) -> str:
    """Id que ordena pela criação: carimbo yyyyMMddHHmmssffffff + sequência.

    Lotes da mesma data desempatam pelo id, então ids gerados depois
    precisam ser maiores. O carimbo nunca recua dentro do processo.
    """
    global _ultimo_carimbo
    with _seq_lock:
        carimbo = max(datetime.now().strftime("%Y%m%d%H%M%S%f"), _ultimo_carimbo)
        _ultimo_carimbo = carimbo
        seq = next(_seq_ids)
    return f"{prefixo}-{carimbo}-{seq:08d}"


def _positivo(valor: Any, campo: str, entidade: Optional[str] = None) -> float:
    try:
        v = float(valor)
    except (TypeError, ValueError):
        raise ValidationError(f"{campo} inválido: {valor!r}", entidade=entidade) from None
    if not v > 0:
        raise ValidationError(f"{campo} deve ser > 0", entidade=entidade)
    return v


class LivroLotes:
    def __init__(
        self,
        gateway: SqliteGateway,
        cache: CacheLayer,
        locks: MemoryLockProvider,
        repos: Optional[Repositorios] = None,
    ):
        self.gw = gateway
        self.cache = cache
        self.locks = locks
        self.repos = repos or Repositorios(gateway, cache)

    # ---------- helpers ----------

    def _ingrediente(self, ingrediente_id: str) -> Ingrediente:
        ing = self.repos.ingredientes.get(ingrediente_id)
        if ing is None:
            raise MissingIngredientError(ingrediente_id)
        return ing

    def _invalidar(self, ingrediente_id: str) -> None:
        self.cache.invalidate(chave_compras(ingrediente_id))
        self.cache.invalidate(chave_snapshot(ingrediente_id))

    def _lotes_frescos(self, ingrediente_id: str) -> List[Lote]:
        # dentro do lock: descarta a cópia em cache e relê do gateway
        self.cache.invalidate(chave_compras(ingrediente_id))
        return self.repos.compras.lotes_de(ingrediente_id)

    def gravar(self, appends: List[Append], updates: List[Update]) -> None:
        com_retentativas(
            lambda: self.gw.write_batch(appends, updates),
            tentativas=DEFAULTS.backend_max_tentativas,
            base=DEFAULTS.backend_backoff_base,
            descricao="livro_lotes.write_batch",
        )

    def _planejar(self, ingrediente_id: str, qtd: float) -> Tuple[ResultadoConsumo, List[Tuple[str, float]]]:
        """Plano FIFO sem efeitos. Retorna (resultado, [(lote_id, novo_restante)])."""
        lotes = lotes_disponiveis(self._lotes_frescos(ingrediente_id))
        takes, falta = formulas.plan_fifo(
            ((l.lote_id, l.qtd_restante, l.custo_unitario) for l in lotes), qtd
        )
        if falta > 0:
            disponivel = sum(l.qtd_restante for l in lotes)
            raise InsufficientStockError(ingrediente_id, qtd, disponivel)

        restante = {l.lote_id: l.qtd_restante for l in lotes}
        novos: List[Tuple[str, float]] = []
        for lote_id, q, _custo in takes:
            novo = restante[lote_id] - q
            novos.append((lote_id, 0.0 if novo <= formulas.EPS else novo))
        itens = [ItemConsumo(lote_id=l, qtd=q, custo_unitario=c) for l, q, c in takes]
        return ResultadoConsumo(ingrediente_id=ingrediente_id, qtd=qtd, itens=itens), novos

    # ---------- compra ----------

    def registrar_compra(
        self,
        ingrediente_id: str,
        qtd_compra: float,
        preco_total: float,
        unidade: Optional[str] = None,
        data: Any = None,
        nota_fornecedor: Optional[str] = None,
        rendimento_real: Optional[float] = None,
        lote_id: Optional[str] = None,
        prazo: Optional[float] = None,
    ) -> Lote:
        payload = {
            "ingrediente_id": ingrediente_id, "qtd_compra": qtd_compra,
            "preco_total": preco_total, "unidade": unidade, "data": data,
        }
        try:
            qtd_compra = _positivo(qtd_compra, "qtd_compra", ingrediente_id)
            try:
                preco_total = float(preco_total)
            except (TypeError, ValueError):
                raise ValidationError(f"preco_total inválido: {preco_total!r}", entidade=ingrediente_id) from None
            if preco_total < 0:
                raise ValidationError("preco_total deve ser >= 0", entidade=ingrediente_id)
            if rendimento_real is not None:
                rendimento_real = _positivo(rendimento_real, "rendimento_real", ingrediente_id)
            data_iso = normalizar_data(data)

            ing = self._ingrediente(ingrediente_id)
            if rendimento_real is not None:
                # rendimento medido (ex.: 43 camarões em 1 kg) substitui a razão cadastrada
                qtd_estoque = rendimento_real
                custo_unitario = preco_total / rendimento_real
            else:
                qtd_estoque = formulas.stock_quantity(qtd_compra, ing.razao_compra_estoque)
                custo_unitario = formulas.cost_per_stock_unit(preco_total, qtd_compra, ing.razao_compra_estoque)

            compra = Compra(
                data=data_iso,
                lote_id=lote_id or novo_id("LOT"),
                ingrediente_id=ingrediente_id,
                qtd_compra=qtd_compra,
                unidade=unidade or ing.unidade_compra,
                preco_total=preco_total,
                preco_unitario=formulas.unit_price(preco_total, qtd_compra),
                qtd_estoque=qtd_estoque,
                custo_unitario=custo_unitario,
                nota_fornecedor=nota_fornecedor,
            )
            with self.locks.acquire(ingrediente_id, prazo=prazo):
                try:
                    self.gravar([("compras", compra_to_row(compra))], [])
                finally:
                    self._invalidar(ingrediente_id)
        except CusteioError as e:
            log_transaction("compra", payload, error=str(e))
            raise

        log_compra("insert", ingrediente_id, qtd_estoque, lote_id=compra.lote_id,
                   custo_unitario=custo_unitario, preco_total=preco_total)
        log_transaction("compra", payload, result=compra.lote_id)
        return Lote(
            lote_id=compra.lote_id,
            ingrediente_id=ingrediente_id,
            data=compra.data,
            qtd_inicial=qtd_estoque,
            qtd_restante=qtd_estoque,
            custo_unitario=custo_unitario,
        )

    # ---------- consumo ----------

    def consumir(
        self,
        ingrediente_id: str,
        qtd: float,
        prazo: Optional[float] = None,
    ) -> ResultadoConsumo:
        """Baixa FIFO de um ingrediente; todos os lotes tocados em um único update_rows."""
        payload = {"ingrediente_id": ingrediente_id, "qtd": qtd}
        try:
            qtd = _positivo(qtd, "qtd", ingrediente_id)
            self._ingrediente(ingrediente_id)
            with self.locks.acquire(ingrediente_id, prazo=prazo):
                try:
                    resultado, novos = self._planejar(ingrediente_id, qtd)
                    com_retentativas(
                        lambda: self.gw.update_rows("compras", [(l, {"qtd_restante": r}) for l, r in novos]),
                        tentativas=DEFAULTS.backend_max_tentativas,
                        base=DEFAULTS.backend_backoff_base,
                        descricao="livro_lotes.update_rows",
                    )
                finally:
                    self._invalidar(ingrediente_id)
        except CusteioError as e:
            log_transaction("consumo", payload, error=str(e))
            raise

        for item in resultado.itens:
            log_compra("consume", ingrediente_id, item.qtd, lote_id=item.lote_id, custo=item.custo)
        log_transaction("consumo", payload, result={"custo_total": resultado.custo_total})
        return resultado

    def consumir_varios(
        self,
        demandas: Mapping[str, float],
        origem: str = ORIGEM_AVULSO,
        origem_id: Optional[str] = None,
        data: Any = None,
        montar: Optional[MontarRegistros] = None,
        prazo: Optional[float] = None,
    ) -> Dict[str, ResultadoConsumo]:
        """Baixa FIFO de vários ingredientes (tudo ou nada).

        Locks adquiridos em ordem crescente de ingrediente. Todos os planos
        são calculados antes de qualquer escrita; se um ingrediente não tem
        estoque suficiente nada é gravado. Atualizações de lotes, linhas de
        COGS e os registros devolvidos por ``montar`` vão em uma transação.
        """
        data_iso = normalizar_data(data)
        origem_id = origem_id or novo_id(origem[:3])
        payload = {"origem": origem, "origem_id": origem_id, "demandas": dict(demandas)}
        try:
            qtds = {i: _positivo(q, "qtd", i) for i, q in demandas.items()}
            for ingrediente_id in qtds:
                self._ingrediente(ingrediente_id)

            with self.locks.acquire_many(qtds.keys(), prazo=prazo):
                try:
                    resultados: Dict[str, ResultadoConsumo] = {}
                    updates: List[Update] = []
                    for ingrediente_id in sorted(qtds):
                        res, novos = self._planejar(ingrediente_id, qtds[ingrediente_id])
                        resultados[ingrediente_id] = res
                        updates.extend(("compras", l, {"qtd_restante": r}) for l, r in novos)

                    appends: List[Append] = [
                        ("cogs", asdict(LinhaCogs(
                            origem=origem, origem_id=origem_id, data=data_iso,
                            ingrediente_id=res.ingrediente_id, lote_id=item.lote_id,
                            qtd=item.qtd, custo_unitario=item.custo_unitario, custo_total=item.custo,
                        )))
                        for res in resultados.values() for item in res.itens
                    ]
                    if montar is not None:
                        for reg in montar(resultados):
                            (appends if len(reg) == 2 else updates).append(reg)
                    self.gravar(appends, updates)
                finally:
                    for ingrediente_id in qtds:
                        self._invalidar(ingrediente_id)
        except CusteioError as e:
            log_transaction(f"consumo_{origem.lower()}", payload, error=str(e))
            raise

        for res in resultados.values():
            for item in res.itens:
                log_compra("consume", res.ingrediente_id, item.qtd, lote_id=item.lote_id,
                           origem=origem, origem_id=origem_id, custo=item.custo)
        log_transaction(
            f"consumo_{origem.lower()}", payload,
            result={i: r.custo_total for i, r in resultados.items()},
        )
        return resultados

    def registrar_desperdicio(
        self,
        ingrediente_id: str,
        qtd: float,
        data: Any = None,
        nota: Optional[str] = None,
        prazo: Optional[float] = None,
    ) -> Desperdicio:
        data_iso = normalizar_data(data)
        desperdicio_id = novo_id("WST")
        gravado: Dict[str, Desperdicio] = {}

        def _montar(resultados: Dict[str, ResultadoConsumo]) -> List[Append]:
            d = Desperdicio(
                desperdicio_id=desperdicio_id,
                data=data_iso,
                ingrediente_id=ingrediente_id,
                qtd=float(qtd),
                custo=resultados[ingrediente_id].custo_total,
                nota=nota,
            )
            gravado["d"] = d
            return [("desperdicios", asdict(d))]

        self.consumir_varios(
            {ingrediente_id: qtd}, origem=ORIGEM_DESPERDICIO, origem_id=desperdicio_id,
            data=data_iso, montar=_montar, prazo=prazo,
        )
        log_compra("waste", ingrediente_id, float(qtd), custo=gravado["d"].custo, nota=nota)
        return gravado["d"]

    # ---------- leituras (sem lock) ----------

    def snapshot_ingrediente(self, ingrediente_id: str) -> SnapshotIngrediente:
        def _load() -> SnapshotIngrediente:
            ing = self._ingrediente(ingrediente_id)
            lotes = ordenar_fifo(self.repos.compras.lotes_de(ingrediente_id))
            total = sum(l.qtd_restante for l in lotes)
            return SnapshotIngrediente(
                ingrediente=ing,
                lotes=lotes,
                total_restante=total,
                status=status_por_minimo(total, ing.estoque_minimo),
            )

        return self.cache.get_or_load(chave_snapshot(ingrediente_id), _load)

    def preview_custo(self, ingrediente_id: str) -> Optional[float]:
        """Custo por unidade de estoque do lote ativo mais antigo (None se não houver)."""
        self._ingrediente(ingrediente_id)
        lotes = lotes_disponiveis(self.repos.compras.lotes_de(ingrediente_id))
        return lotes[0].custo_unitario if lotes else None

    def custo_atual(self, ingrediente_id: str) -> float:
        """Como preview_custo, mas sem lote com preço é erro (MissingPriceDataError)."""
        custo = self.preview_custo(ingrediente_id)
        if custo is None:
            raise MissingPriceDataError(ingrediente_id)
        return custo
