# custeio/usecases/producao.py
"""
UC: Custeio de produção (batch).

- abrir_producao(): registra uma produção ABERTA.
- calcular_producao(): receita + embalagem + mão de obra + overhead.
  Prévia (sem baixa) por padrão; com `comprometida=True` a receita é
  baixada FIFO pelo livro de lotes, tudo ou nada.
- finalizar_producao(): calcula, grava os componentes e fecha (FECHADA).
- registrar_mao_de_obra(): apontamento de horas x taxa por centro de custo.
- usar_embalagem(): baixa FIFO de embalagem ligada a uma produção; o custo
  real vai para o relatório, o custo da produção segue `pack_per_serve`.
"""

from __future__ import annotations

from dataclasses import asdict, replace
from typing import Any, Callable, Dict, List, Optional

from custeio.adapters.parsers import normalizar_data
from custeio.domain import formulas
from custeio.domain.errors import CusteioError, ValidationError
from custeio.domain.models import (
    ORIGEM_EMBALAGEM, ORIGEM_PRODUCAO, PRODUCAO_ABERTA, PRODUCAO_FECHADA, EntradaProducao, Producao,
    RegistroMaoObra, Resultado, ResultadoConsumo, ResultadoProducao,
)
from custeio.infra.gateway import Update
from custeio.infra.logger import log_system_event, log_transaction
from .custo_menu import MotorCusto, aviso_sem_receita
from .livro_lotes import LivroLotes, novo_id


def _nao_negativo(valor: Any, campo: str, entidade: str) -> float:
    try:
        v = float(valor or 0.0)
    except (TypeError, ValueError):
        raise ValidationError(f"{campo} inválido: {valor!r}", entidade=entidade) from None
    if v < 0:
        raise ValidationError(f"{campo} deve ser >= 0", entidade=entidade)
    return v


class CusteioProducao:
    def __init__(self, livro: LivroLotes, motor: MotorCusto):
        self.livro = livro
        self.motor = motor
        self.repos = livro.repos

    def abrir_producao(
        self,
        menu_id: str,
        qtd_planejada: float,
        data: Any = None,
        nota: Optional[str] = None,
    ) -> Producao:
        if self.repos.menus.get(menu_id) is None:
            raise ValidationError("menu não cadastrado", entidade=menu_id)
        qtd = _nao_negativo(qtd_planejada, "qtd_planejada", menu_id)
        if qtd <= 0:
            raise ValidationError("qtd_planejada deve ser > 0", entidade=menu_id)
        p = Producao(
            producao_id=novo_id("BATCH"),
            data=normalizar_data(data),
            menu_id=menu_id,
            qtd_planejada=qtd,
            status=PRODUCAO_ABERTA,
            nota=nota,
        )
        self.repos.producoes.insert(p)
        log_system_event("producao_aberta", {"producao_id": p.producao_id, "menu_id": menu_id, "qtd": qtd})
        return p

    def _mao_de_obra(self, entrada: EntradaProducao, avisos: List[str]) -> Dict[str, Optional[float]]:
        """Taxa e base da mão de obra conforme o tipo do centro de custo."""
        if not entrada.centro_id:
            avisos.append("missing cost center")
            return {"taxa": 0.0, "base": None}
        centro = self.repos.centros.get(entrada.centro_id)
        if centro is None:
            avisos.append(f"missing cost center: {entrada.centro_id}")
            return {"taxa": 0.0, "base": None}
        base = {"hora": None, "kg": entrada.peso_kg, "porcao": entrada.qtd_planejada}.get(centro.tipo_taxa)
        return {"taxa": centro.taxa, "base": base}

    def calcular_producao(
        self,
        entrada: EntradaProducao,
        prazo: Optional[float] = None,
        fechar: Optional[Callable[[ResultadoProducao], List[Update]]] = None,
    ) -> Resultado[ResultadoProducao]:
        """Custo do batch.

        ``fechar`` recebe o resultado e devolve updates a gravar junto: na
        mesma transação da baixa quando a produção é comprometida.
        """
        menu_id = entrada.menu_id
        payload = asdict(entrada)
        try:
            plan = _nao_negativo(entrada.qtd_planejada, "qtd_planejada", menu_id)
            if plan <= 0:
                raise ValidationError("qtd_planejada deve ser > 0", entidade=menu_id)
            entrada = replace(
                entrada,
                qtd_planejada=plan,
                qtd_real=_nao_negativo(entrada.qtd_real, "qtd_real", menu_id),
                peso_kg=_nao_negativo(entrada.peso_kg, "peso_kg", menu_id),
                horas=_nao_negativo(entrada.horas, "horas", menu_id),
            )
            if self.repos.menus.get(menu_id) is None:
                raise ValidationError("menu não cadastrado", entidade=menu_id)

            avisos: List[str] = []
            oh = self.repos.params.overheads()
            pack = oh.pack_per_serve if entrada.pack_per_serve is None else entrada.pack_per_serve
            oh_hora = oh.oh_per_hour if entrada.oh_per_hour is None else entrada.oh_per_hour
            oh_kg = oh.oh_per_kg if entrada.oh_per_kg is None else entrada.oh_per_kg
            mao = self._mao_de_obra(entrada, avisos)

            def _compor(receita_por_porcao: float, consumos: Dict[str, ResultadoConsumo]) -> ResultadoProducao:
                c = formulas.batch_cost(
                    recipe_cost_per_serve=receita_por_porcao,
                    plan_qty=plan,
                    actual_qty=entrada.qtd_real,
                    hours=entrada.horas,
                    labor_rate=mao["taxa"],
                    oh_per_hour=oh_hora,
                    oh_per_kg=oh_kg,
                    weight_kg=entrada.peso_kg,
                    pack_per_serve=pack,
                    labor_units=mao["base"],
                )
                return ResultadoProducao(
                    menu_id=menu_id,
                    qtd_planejada=plan,
                    qtd_real=entrada.qtd_real,
                    custo_receita=c["recipe"],
                    custo_embalagem=c["packaging"],
                    custo_mao_obra=c["labor"],
                    custo_overhead=c["overhead"],
                    custo_total=c["total"],
                    custo_por_porcao=c["per_serve"],
                    variancia=c["variance"],
                    consumos=consumos,
                )

            itens = self.repos.receitas.itens(menu_id)
            if entrada.comprometida and itens:
                demandas: Dict[str, float] = {}
                for item in itens:
                    demandas[item.ingrediente_id] = demandas.get(item.ingrediente_id, 0.0) + item.qtd_por_porcao * plan
                calculado: Dict[str, ResultadoProducao] = {}

                def _montar(consumos: Dict[str, ResultadoConsumo]) -> List[Update]:
                    r = _compor(sum(c.custo_total for c in consumos.values()) / plan, consumos)
                    calculado["r"] = r
                    return list(fechar(r)) if fechar else []

                self.livro.consumir_varios(
                    demandas,
                    origem=ORIGEM_PRODUCAO,
                    origem_id=entrada.producao_id or novo_id("BATCH"),
                    data=entrada.data,
                    montar=_montar,
                    prazo=prazo,
                )
                resultado = calculado["r"]
            else:
                if itens:
                    _linhas, receita_por_porcao, avisos_receita = self.motor.custear_receita(itens)
                    avisos.extend(avisos_receita)
                else:
                    avisos.append(aviso_sem_receita(menu_id))
                    receita_por_porcao = 0.0
                resultado = _compor(receita_por_porcao, {})
                if fechar:
                    self.livro.gravar([], list(fechar(resultado)))
        except CusteioError as e:
            log_transaction("producao", payload, error=str(e))
            raise

        log_transaction("producao", payload, result={"custo_total": resultado.custo_total})
        return Resultado(resultado, avisos)

    def finalizar_producao(
        self,
        producao_id: str,
        qtd_real: float,
        peso_kg: float = 0.0,
        horas: float = 0.0,
        centro_id: Optional[str] = None,
        comprometida: bool = False,
        nota: Optional[str] = None,
        prazo: Optional[float] = None,
    ) -> Resultado[ResultadoProducao]:
        # lock da produção antes dos locks de ingrediente, nunca o inverso
        with self.livro.locks.acquire(f"producao:{producao_id}", prazo=prazo):
            p = self.repos.producoes.get(producao_id)
            if p is None:
                raise ValidationError("produção não encontrada", entidade=producao_id)
            if p.status == PRODUCAO_FECHADA:
                raise ValidationError("produção já finalizada", entidade=producao_id)

            entrada = EntradaProducao(
                menu_id=p.menu_id,
                qtd_planejada=p.qtd_planejada,
                qtd_real=qtd_real,
                peso_kg=peso_kg,
                horas=horas,
                centro_id=centro_id,
                comprometida=comprometida,
                producao_id=producao_id,
                data=p.data,
            )

            def _fechar(r: ResultadoProducao) -> List[Update]:
                return [("producoes", producao_id, {
                    "status": PRODUCAO_FECHADA,
                    "qtd_real": r.qtd_real,
                    "peso_kg": float(peso_kg or 0.0),
                    "horas": float(horas or 0.0),
                    "custo_receita": r.custo_receita,
                    "custo_embalagem": r.custo_embalagem,
                    "custo_mao_obra": r.custo_mao_obra,
                    "custo_overhead": r.custo_overhead,
                    "custo_total": r.custo_total,
                    "custo_por_porcao": r.custo_por_porcao,
                    "comprometida": 1 if comprometida else 0,
                    "nota": nota if nota is not None else p.nota,
                })]

            res = self.calcular_producao(entrada, prazo=prazo, fechar=_fechar)

        log_system_event("producao_finalizada", {
            "producao_id": producao_id,
            "custo_total": res.valor.custo_total,
            "comprometida": comprometida,
        })
        return res

    # ---------- apontamentos ----------

    def registrar_mao_de_obra(
        self,
        centro_id: str,
        horas: float,
        taxa: Optional[float] = None,
        data: Any = None,
        nota: Optional[str] = None,
    ) -> RegistroMaoObra:
        """Aponta horas em um centro de custo.

        Sem `taxa`, usa a taxa cadastrada do centro. Entra no relatório de
        vendas como custo de mão de obra do período.
        """
        payload = {"centro_id": centro_id, "horas": horas, "taxa": taxa}
        try:
            h = _nao_negativo(horas, "horas", centro_id)
            if h <= 0:
                raise ValidationError("horas deve ser > 0", entidade=centro_id)
            centro = self.repos.centros.get(centro_id)
            if centro is None:
                raise ValidationError("centro de custo não cadastrado", entidade=centro_id)
            t = centro.taxa if taxa is None else _nao_negativo(taxa, "taxa", centro_id)
            reg = RegistroMaoObra(
                registro_id=novo_id("LAB"),
                data=normalizar_data(data),
                centro_id=centro_id,
                horas=h,
                taxa=float(t),
                valor=h * float(t),
                nota=nota,
            )
            self.repos.mao_obra.insert(reg)
        except CusteioError as e:
            log_transaction("mao_de_obra", payload, error=str(e))
            raise
        log_transaction("mao_de_obra", payload, result={"valor": reg.valor})
        return reg

    def usar_embalagem(
        self,
        producao_id: str,
        embalagem_id: str,
        qtd: float,
        data: Any = None,
        prazo: Optional[float] = None,
    ) -> ResultadoConsumo:
        """Baixa FIFO de uma embalagem (cadastrada como ingrediente) para uma produção.

        Cada lote tocado vira uma linha de COGS com origem EMBALAGEM e
        origem_id = produção; o relatório soma essas linhas por período.
        """
        p = self.repos.producoes.get(producao_id)
        if p is None:
            raise ValidationError("produção não encontrada", entidade=producao_id)
        resultados = self.livro.consumir_varios(
            {embalagem_id: qtd},
            origem=ORIGEM_EMBALAGEM,
            origem_id=producao_id,
            data=data or p.data,
            prazo=prazo,
        )
        res = resultados[embalagem_id]
        log_system_event("embalagem_usada", {
            "producao_id": producao_id,
            "embalagem_id": embalagem_id,
            "custo": res.custo_total,
        })
        return res
