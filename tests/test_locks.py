import threading
import time

import pytest

from custeio.domain.errors import LockTimeoutError
from custeio.infra.locks import MemoryLockProvider


def _provedor(pausas=None, **kw):
    kw.setdefault("timeout", 0.01)
    kw.setdefault("max_tentativas", 3)
    kw.setdefault("backoff_base", 0.05)
    return MemoryLockProvider(sleep=(pausas.append if pausas is not None else time.sleep), **kw)


def test_acquire_libera_ao_sair():
    locks = _provedor()
    with locks.acquire("lima"):
        assert locks.locked("lima")
    assert not locks.locked("lima")


def test_libera_mesmo_com_excecao():
    locks = _provedor()
    with pytest.raises(RuntimeError):
        with locks.acquire("lima"):
            raise RuntimeError("boom")
    assert not locks.locked("lima")


def test_timeout_apos_tentativas_com_backoff():
    pausas = []
    locks = _provedor(pausas)
    with locks.acquire("lima"):
        with pytest.raises(LockTimeoutError) as exc:
            with locks.acquire("lima"):
                pass
    assert exc.value.chave == "lima"
    assert exc.value.tentativas == 3
    assert pausas == [0.05, 0.1]


def test_prazo_vencido_nao_adquire():
    locks = _provedor()
    with pytest.raises(LockTimeoutError) as exc:
        with locks.acquire("lima", prazo=time.monotonic() - 1):
            pass
    assert exc.value.tentativas == 0
    assert not locks.locked("lima")


def test_chaves_diferentes_sao_independentes():
    locks = _provedor()
    with locks.acquire("lima"):
        with locks.acquire("acucar"):
            assert locks.locked("lima") and locks.locked("acucar")


def test_acquire_many_em_ordem_e_solta_tudo_na_falha():
    pausas = []
    locks = _provedor(pausas, max_tentativas=1)
    with locks.acquire("b"):
        with pytest.raises(LockTimeoutError) as exc:
            with locks.acquire_many(["c", "a", "b"]):
                pass
        assert exc.value.chave == "b"
        # "a" foi obtido antes de "b" e devolvido; "c" nunca foi tentado
        assert not locks.locked("a")
        assert not locks.locked("c")


def test_acquire_many_segura_todas():
    locks = _provedor()
    with locks.acquire_many(["x", "y", "x"]):
        assert locks.locked("x") and locks.locked("y")
    assert not locks.locked("x") and not locks.locked("y")


def test_registro_de_chaves_nao_cresce_sem_limite():
    locks = _provedor()
    for i in range(50):
        with locks.acquire(f"ing-{i}"):
            assert locks.chaves_em_uso() == 1
    assert locks.chaves_em_uso() == 0

    pausas = []
    locks = _provedor(pausas, max_tentativas=1)
    with locks.acquire("lima"):
        with pytest.raises(LockTimeoutError):
            with locks.acquire("lima"):
                pass
        assert locks.chaves_em_uso() == 1
    assert locks.chaves_em_uso() == 0


def test_espera_continua_valida_apos_liberacao():
    locks = _provedor(timeout=1.0)
    dentro = threading.Event()
    obtido = []

    def segundo():
        dentro.wait()
        with locks.acquire("lima"):
            obtido.append(locks.locked("lima"))

    t = threading.Thread(target=segundo)
    t.start()
    with locks.acquire("lima"):
        dentro.set()
        time.sleep(0.05)
    t.join(2)
    assert obtido == [True]
    assert locks.chaves_em_uso() == 0
