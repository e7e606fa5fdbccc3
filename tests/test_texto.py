from decimal import Decimal

import pytest

from extrator_despacho.texto import (
    colapsar_caracteres_dobrados,
    colapsar_letras_espacadas,
    cortar_em_palavras,
    deduplicar_palavras,
    eh_valor_institucional,
    formatar_data_br,
    limpar_nome_parte,
    limpar_nome_pessoa,
    normalizar_cpf,
    normalizar_para_busca,
    normalizar_valor,
    parse_data,
    parse_valor_br,
    trecho_em_torno,
    unir_bbox,
)

from conftest import palavra


class TestNormalizacao:
    def test_busca_remove_acentos_e_cola_letras_espacadas(self):
        assert normalizar_para_busca("P o d e r  Judiciário") == "poder judiciario"

    def test_busca_troca_simbolos_por_espaco(self):
        assert normalizar_para_busca("Tribunal (TJPB): Paraíba!") == "tribunal tjpb paraiba"

    def test_colapsar_letras_espacadas(self):
        assert colapsar_letras_espacadas("D E S P A C H O nº 12") == "DESPACHO nº 12"

    def test_caracteres_dobrados(self):
        assert colapsar_caracteres_dobrados("DDEESSPPAACCHHOO") == "DESPACHO"
        assert colapsar_caracteres_dobrados("CASA") == "CASA"
        assert colapsar_caracteres_dobrados("ABC") == "ABC"


class TestValoresEDatas:
    def test_parse_valor_br(self):
        assert parse_valor_br("R$ 1.999,80") == Decimal("1999.80")
        assert parse_valor_br("0,30") == Decimal("0.30")
        assert parse_valor_br("abc") is None
        assert parse_valor_br("") is None

    def test_normalizar_valor(self):
        assert normalizar_valor("R$1.234,56") == "R$ 1.234,56"
        assert normalizar_valor("1234,5") == "R$ 1.234,50"
        assert normalizar_valor("sem valor") == ""

    @pytest.mark.parametrize("bruto", ["nan", "NaN", "Infinity", "-inf", "sNaN"])
    def test_valores_especiais_nao_sao_dinheiro(self, bruto):
        assert parse_valor_br(bruto) is None
        assert normalizar_valor(bruto) == ""

    def test_parse_data(self):
        assert parse_data("05/03/2024") == "2024-03-05"
        assert parse_data("5-3-24") == "2024-03-05"
        assert parse_data("15 de março de 2024") == "2024-03-15"
        assert parse_data("15 de marco de 2024") == "2024-03-15"
        assert parse_data("31/02/2024") is None
        assert parse_data("30 de fevereiro de 2024") is None

    def test_formatar_data_br(self):
        assert formatar_data_br("2024-03-05") == "05/03/2024"
        assert formatar_data_br("invalida") == "invalida"

    def test_cpf_idempotente(self):
        assert normalizar_cpf("123.456.789-09") == "12345678909"
        assert normalizar_cpf(normalizar_cpf("123.456.789-09")) == "12345678909"

    def test_cpf_ignora_digitos_sobrescritos(self):
        assert normalizar_cpf("¹²³.456.789-01") == "45678901"
        assert normalizar_cpf("１２３.456.789-01") == "45678901"


class TestNomes:
    def test_cortar_em_palavras(self):
        assert cortar_em_palavras("Fulano de Tal CPF 123", ["CPF"]) == "Fulano de Tal"
        # palavra na posição 0 não corta
        assert cortar_em_palavras("CPF do perito", ["CPF"]) == "CPF do perito"

    def test_limpar_nome_pessoa(self):
        assert limpar_nome_pessoa("RobsonLima") == "Robson Lima"
        assert limpar_nome_pessoa("perita Ana Souza - ana@tjpb.jus.br") == "Ana Souza"

    def test_limpar_nome_parte(self):
        assert limpar_nome_parte("MARIA DA SILVA, CPF 123.456.789-00") == "MARIA DA SILVA"
        assert limpar_nome_parte("José Pereira perante o juízo da 1ª Vara") == "José Pereira"

    def test_valor_institucional(self):
        assert eh_valor_institucional("Juízo da 2ª Vara Cível")
        assert not eh_valor_institucional("Carlos Mendes")


class TestGeometria:
    def test_deduplicar_ignora_repetidas_e_vazias(self):
        a = palavra("Processo", 0.1, 0.5)
        b = palavra("Processo", 0.1, 0.5)
        vazia = palavra(" ", 0.3, 0.5)
        assert deduplicar_palavras([a, b, vazia]) == [a]

    def test_unir_bbox(self):
        caixa = unir_bbox([palavra("a", 0.1, 0.2), palavra("b", 0.5, 0.6)])
        assert caixa.x0 == 0.1
        assert caixa.y0 == 0.2
        assert caixa.y1 == 0.6 + 0.012
        assert unir_bbox([]) is None

    def test_trecho_em_torno_limitado(self):
        texto = "x" * 500
        assert len(trecho_em_torno(texto, 300)) == 160
        assert trecho_em_torno("", 3) == ""
