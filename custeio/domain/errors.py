# custeio/domain/errors.py
"""
Hierarquia de erros do custeio.

Todo erro carrega um ``codigo`` (tipo, legível por máquina) e, quando
aplicável, o identificador da entidade que causou a falha. A mensagem
exibida ao usuário sempre inclui ambos.

    CusteioError
    +-- ValidationError          entrada inválida; nunca re-tentada
    +-- MissingIngredientError   ingrediente desconhecido
    +-- MissingPriceDataError    ingrediente sem lote com preço
    +-- InsufficientStockError   regra de negócio; nunca re-tentada
    +-- LockTimeoutError         contenção transitória; operação pode ser repetida
    +-- BackendUnavailableError  I/O transitório; re-tentado no cache

``StaleDataWarning`` não é erro: é emitido via ``warnings.warn`` quando o
cache devolve um valor expirado porque o backend falhou.
"""

from __future__ import annotations

from typing import Optional


class CusteioError(Exception):
    """Base de todos os erros do pacote."""

    codigo = "CUSTEIO_ERROR"

    def __init__(self, mensagem: str, entidade: Optional[str] = None):
        self.entidade = entidade
        self.mensagem = mensagem
        super().__init__(self._formatar())

    def _formatar(self) -> str:
        if self.entidade:
            return f"[{self.codigo}] {self.entidade}: {self.mensagem}"
        return f"[{self.codigo}] {self.mensagem}"

    def to_dict(self) -> dict:
        return {"codigo": self.codigo, "entidade": self.entidade, "mensagem": self.mensagem}


class ValidationError(CusteioError):
    codigo = "VALIDATION_ERROR"


class MissingIngredientError(CusteioError):
    codigo = "MISSING_INGREDIENT"

    def __init__(self, ingrediente_id: str):
        self.ingrediente_id = ingrediente_id
        super().__init__("ingrediente não cadastrado", entidade=ingrediente_id)


class MissingPriceDataError(CusteioError):
    codigo = "MISSING_PRICE"

    def __init__(self, ingrediente_id: str):
        self.ingrediente_id = ingrediente_id
        super().__init__("nenhum lote com preço disponível", entidade=ingrediente_id)


class InsufficientStockError(CusteioError):
    codigo = "INSUFFICIENT_STOCK"

    def __init__(self, ingrediente_id: str, solicitado: float, disponivel: float):
        self.ingrediente_id = ingrediente_id
        self.solicitado = float(solicitado)
        self.disponivel = float(disponivel)
        super().__init__(
            f"estoque insuficiente (solicitado={self.solicitado:g}, disponível={self.disponivel:g})",
            entidade=ingrediente_id,
        )

    def to_dict(self) -> dict:
        out = super().to_dict()
        out.update({"solicitado": self.solicitado, "disponivel": self.disponivel})
        return out


class LockTimeoutError(CusteioError):
    codigo = "LOCK_TIMEOUT"

    def __init__(self, chave: str, tentativas: int = 0):
        self.chave = chave
        self.tentativas = tentativas
        super().__init__(f"lock não obtido após {tentativas} tentativa(s)", entidade=chave)


class BackendUnavailableError(CusteioError):
    codigo = "BACKEND_UNAVAILABLE"


class StaleDataWarning(UserWarning):
    """Valor servido do cache após expirar, porque o backend falhou."""

    def __init__(self, chave: str, idade_segundos: float):
        self.chave = chave
        self.idade_segundos = idade_segundos
        super().__init__(f"dados expirados servidos para '{chave}' (idade {idade_segundos:.1f}s)")
