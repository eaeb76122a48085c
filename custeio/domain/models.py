# custeio/domain/models.py
"""
Modelos (dataclasses) do domínio.

Observação importante:
- As linhas do banco são convertidas nestes registros na fronteira
  (`infra/repositories.py`); a lógica de negócio não manipula dicts soltos.
- Quantidades estão sempre em unidade de ESTOQUE, exceto `Compra.qtd_compra`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Generic, List, Optional, Tuple, TypeVar

from custeio.domain.formulas import weighted_cost

T = TypeVar("T")


# Estados de lote
LOTE_ATIVO = "ATIVO"
LOTE_ESGOTADO = "ESGOTADO"

# Estados de produção
PRODUCAO_ABERTA = "ABERTA"
PRODUCAO_FECHADA = "FECHADA"

# Origem de uma linha de consumo (COGS)
ORIGEM_VENDA = "VENDA"
ORIGEM_PRODUCAO = "PRODUCAO"
ORIGEM_DESPERDICIO = "DESPERDICIO"
ORIGEM_AVULSO = "AVULSO"
ORIGEM_EMBALAGEM = "EMBALAGEM"  # embalagem usada em uma produção


@dataclass
class Ingrediente:
    """Cadastro de ingrediente."""
    id: str
    nome: str
    unidade_estoque: str = "un"
    unidade_compra: str = "un"
    razao_compra_estoque: float = 1.0   # 1 unidade de compra = N unidades de estoque
    estoque_minimo: float = 0.0


@dataclass
class Lote:
    """Fatia datada e precificada do estoque, criada por uma compra."""
    lote_id: str
    ingrediente_id: str
    data: str                # ISO (YYYY-MM-DD)
    qtd_inicial: float
    qtd_restante: float
    custo_unitario: float    # por unidade de estoque

    @property
    def estado(self) -> str:
        return LOTE_ATIVO if self.qtd_restante > 0 else LOTE_ESGOTADO


@dataclass
class Compra:
    """Compra que origina um lote (relação 1:1)."""
    data: str
    lote_id: str
    ingrediente_id: str
    qtd_compra: float
    unidade: str
    preco_total: float
    preco_unitario: float
    qtd_estoque: float
    custo_unitario: float
    nota_fornecedor: Optional[str] = None


@dataclass
class ItemReceita:
    """Linha da ficha técnica: quanto de um ingrediente vai em uma porção."""
    menu_id: str
    ingrediente_id: str
    qtd_por_porcao: float


@dataclass
class Menu:
    menu_id: str
    nome: str
    categoria: Optional[str] = None
    ativo: bool = True
    preco: Optional[float] = None


@dataclass
class CentroCusto:
    centro_id: str
    nome: str
    tipo_taxa: str = "hora"     # 'hora' | 'kg' | 'porcao'
    taxa: float = 0.0


@dataclass
class Plataforma:
    nome: str
    comissao_pct: float = 0.0   # 0-100


@dataclass
class Overheads:
    """Taxas de rateio (tabela `params`)."""
    pack_per_serve: float = 0.0
    oh_per_hour: float = 0.0
    oh_per_kg: float = 0.0
    oh_per_serve: float = 0.0


@dataclass
class Producao:
    producao_id: str
    data: str
    menu_id: str
    qtd_planejada: float
    status: str = PRODUCAO_ABERTA
    qtd_real: Optional[float] = None
    peso_kg: Optional[float] = None
    horas: Optional[float] = None
    custo_receita: Optional[float] = None
    custo_embalagem: Optional[float] = None
    custo_mao_obra: Optional[float] = None
    custo_overhead: Optional[float] = None
    custo_total: Optional[float] = None
    custo_por_porcao: Optional[float] = None
    comprometida: bool = False
    nota: Optional[str] = None


@dataclass
class Venda:
    venda_id: str
    data: str
    plataforma: str
    menu_id: str
    qtd: float
    preco_unitario: float
    liquido_unitario: float
    cogs: float
    lucro: float


@dataclass
class LinhaCogs:
    """Consumo de um lote por uma venda, produção ou desperdício."""
    origem: str
    origem_id: str
    data: str
    ingrediente_id: str
    lote_id: str
    qtd: float
    custo_unitario: float
    custo_total: float


@dataclass
class Desperdicio:
    desperdicio_id: str
    data: str
    ingrediente_id: str
    qtd: float
    custo: float
    nota: Optional[str] = None


@dataclass
class RegistroMaoObra:
    """Horas apontadas em um centro de custo; valor = horas x taxa."""
    registro_id: str
    data: str
    centro_id: str
    horas: float
    taxa: float
    valor: float
    nota: Optional[str] = None


# -------------------------
# Resultados
# -------------------------

@dataclass
class ItemConsumo:
    lote_id: str
    qtd: float
    custo_unitario: float

    @property
    def custo(self) -> float:
        return self.qtd * self.custo_unitario


@dataclass
class ResultadoConsumo:
    ingrediente_id: str
    qtd: float
    itens: List[ItemConsumo]

    @property
    def custo_total(self) -> float:
        return weighted_cost(self._takes())[0]

    @property
    def custo_medio(self) -> float:
        return weighted_cost(self._takes())[1]

    def _takes(self) -> List[Tuple[str, float, float]]:
        return [(i.lote_id, i.qtd, i.custo_unitario) for i in self.itens]


@dataclass
class SnapshotIngrediente:
    ingrediente: Ingrediente
    lotes: List[Lote]
    total_restante: float
    status: str


@dataclass
class LinhaCustoMenu:
    ingrediente_id: str
    nome: str
    qtd_por_porcao: float
    custo_unitario: Optional[float]
    custo: float
    tem_preco: bool


@dataclass
class CustoMenu:
    menu_id: str
    linhas: List[LinhaCustoMenu]
    custo_ingredientes: float
    custo_embalagem: float
    custo_overhead: float
    custo_total: float
    gp_alvo: float
    preco_sugerido: float


@dataclass
class EntradaVenda:
    menu_id: str
    qtd: float
    preco_unitario: float
    plataforma: str = "loja"
    data: Optional[str] = None


@dataclass
class EntradaProducao:
    menu_id: str
    qtd_planejada: float
    qtd_real: float = 0.0
    peso_kg: float = 0.0
    horas: float = 0.0
    centro_id: Optional[str] = None
    comprometida: bool = False
    producao_id: Optional[str] = None
    data: Optional[str] = None
    # None => usa a taxa gravada em `params`
    pack_per_serve: Optional[float] = None
    oh_per_hour: Optional[float] = None
    oh_per_kg: Optional[float] = None


@dataclass
class ResultadoProducao:
    menu_id: str
    qtd_planejada: float
    qtd_real: float
    custo_receita: float
    custo_embalagem: float
    custo_mao_obra: float
    custo_overhead: float
    custo_total: float
    custo_por_porcao: float
    variancia: float
    consumos: Dict[str, ResultadoConsumo] = field(default_factory=dict)


@dataclass
class Resultado(Generic[T]):
    """Valor calculado + avisos não fatais ("calculado com ressalvas")."""
    valor: T
    avisos: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.avisos
