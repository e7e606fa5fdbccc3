import pytest

from extrator_despacho.similaridade import (
    alinhar_ancora,
    similaridade_diff,
    similaridade_edicao,
)


@pytest.mark.parametrize("similaridade", [similaridade_edicao, similaridade_diff])
def test_textos_iguais_e_vazios(similaridade):
    assert similaridade("despacho", "despacho") == pytest.approx(1.0)
    assert similaridade("", "despacho") == 0.0
    assert similaridade("", "") == 0.0


def test_similaridade_edicao():
    assert similaridade_edicao("despacho", "despaxo") == pytest.approx(1 - 2 / 8)


def test_similaridade_diff_conta_remocoes_e_insercoes():
    # uma troca = uma remoção + uma inserção
    assert similaridade_diff("abcd", "abcf") == pytest.approx(0.5)


def test_alinhar_ancora_exata():
    assert alinhar_ancora("processo numero 123", "numero") == (9, 15)


def test_alinhar_ancora_respeita_cursor():
    texto = "valor: 10 valor: 20"
    assert alinhar_ancora(texto, "valor:", 1) == (10, 16)


def test_alinhar_ancora_tolerante():
    achado = alinhar_ancora("requerente: joao interessado: fulano", "interesado:", 0)
    assert achado is not None
    inicio, fim = achado
    assert 15 <= inicio <= 19
    assert fim > inicio


def test_alinhar_ancora_sem_casamento():
    assert alinhar_ancora("abc", "xyz", 0) is None
    assert alinhar_ancora("abc", "a", 5) is None
    assert alinhar_ancora("abc", "", 0) is None
