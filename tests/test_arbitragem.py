from extrator_despacho.arbitragem import arbitrar, mesclar_sementes
from extrator_despacho.evidencia import montar_campo
from extrator_despacho.modelos import nao_encontrado


def _campo(valor, conf, pagina=1, metodo="regex"):
    return montar_campo(valor, conf, metodo, "trecho", pagina)


class TestGenerica:
    def test_sem_semente_usa_direto(self):
        direto = _campo("Ana", 0.6)
        assert arbitrar({}, "PERITO", direto) is direto

    def test_semente_vence_no_empate(self):
        semente = _campo("Ana Lima", 0.75, metodo="template_region:first_top")
        direto = _campo("Ana", 0.75)
        assert arbitrar({"PERITO": semente}, "PERITO", direto) is semente

    def test_direto_mais_confiante(self):
        semente = _campo("Ana Lima", 0.6)
        direto = _campo("Ana", 0.8)
        assert arbitrar({"PERITO": semente}, "PERITO", direto) is direto

    def test_direto_ausente(self):
        semente = _campo("Ana Lima", 0.5)
        assert arbitrar({"PERITO": semente}, "PERITO", nao_encontrado()) is semente


def test_parte_institucional_perde_para_o_direto():
    semente = _campo("Juízo da 2ª Vara Cível", 0.9)
    direto = _campo("Carlos Mendes", 0.6)
    assert arbitrar({"PROMOVIDO": semente}, "PROMOVIDO", direto) is direto


def test_assinante_sempre_direto():
    semente = _campo("Robson Lima Ferreira", 0.9)
    direto = _campo("Robson Lima", 0.7)
    assert arbitrar({"ASSINANTE": semente}, "ASSINANTE", direto) is direto


class TestValorPorPagina:
    def test_semente_na_pagina_certa(self):
        semente = _campo("R$ 1.000,00", 0.9, pagina=2)
        direto = _campo("R$ 900,00", 0.7, pagina=2)
        assert arbitrar({"VALOR_ARBITRADO_DE": semente}, "VALOR_ARBITRADO_DE", direto, 2) is semente

    def test_semente_em_outra_pagina_e_descartada(self):
        semente = _campo("R$ 1.000,00", 0.9, pagina=5)
        direto = _campo("R$ 900,00", 0.7, pagina=2)
        assert arbitrar({"VALOR_ARBITRADO_DE": semente}, "VALOR_ARBITRADO_DE", direto, 2) is direto

    def test_direto_em_outra_pagina_vira_ausente(self):
        direto = _campo("R$ 900,00", 0.7, pagina=3)
        escolhido = arbitrar({}, "VALOR_ARBITRADO_JZ", direto, 1)
        assert not escolhido.encontrado
        assert escolhido.valor == "-"


def test_mesclar_sementes_fica_com_a_mais_confiante():
    base = {"PERITO": _campo("Ana", 0.7), "VARA": _campo("1ª Vara", 0.6)}
    extra = {"PERITO": _campo("Ana Lima", 0.8), "VARA": _campo("2ª Vara", 0.6), "DATA": _campo("05/03/2024", 0.5)}
    saida = mesclar_sementes(base, extra)
    assert saida["PERITO"].valor == "Ana Lima"
    assert saida["VARA"].valor == "1ª Vara"
    assert set(saida) == {"PERITO", "VARA", "DATA"}
