# tests/domain/test_cpf_importacao_vo.py
import pytest

from api.domain.importacao.value_objects import CPF


def test_cpf_valido_formatado() -> None:
    cpf = CPF("111.444.777-35")
    assert cpf.valor == "11144477735"


def test_cpf_valido_sem_formatacao() -> None:
    assert CPF("52998224725").valor == "52998224725"


def test_cpf_digito_verificador_invalido() -> None:
    with pytest.raises(ValueError, match="CPF invalido"):
        CPF("111.444.777-00")


def test_cpf_todos_iguais_invalido() -> None:
    with pytest.raises(ValueError):
        CPF("111.111.111-11")
    with pytest.raises(ValueError):
        CPF("00000000000")


def test_cpf_comprimento_errado() -> None:
    with pytest.raises(ValueError, match="comprimento 3"):
        CPF("123")


def test_cpf_mascarado() -> None:
    assert CPF("11144477735").mascarado == "***.444.777-**"


def test_cpf_repr_e_str_nunca_mostram_completo() -> None:
    """CPF nunca aparece completo em logs (LGPD)."""
    cpf = CPF("11144477735")
    assert "11144477735" not in repr(cpf)
    assert "11144477735" not in str(cpf)
    assert "***" in repr(cpf)


def test_cpf_igualdade_por_valor() -> None:
    a = CPF("11144477735")
    b = CPF("111.444.777-35")
    assert a == b
    assert hash(a) == hash(b)
    assert a != CPF("52998224725")
