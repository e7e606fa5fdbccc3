"""Extração ponta a ponta sobre PDFs sintéticos (páginas montadas em memória)."""

import pytest

from extrator_despacho.config import ConfigExtrator, ConfigReferencia, OpcoesExtracao
from extrator_despacho.extrator import (
    TIPO_CERTIDAO,
    TIPO_DESPACHO,
    extrair_despacho,
    extrair_pdf,
    filtrar_campos,
    trechos_com_dicas,
)
from extrator_despacho.modelos import DadosPdf, Marcador, nao_encontrado
from extrator_despacho.janelas import FONTE_HEURISTICA
from extrator_despacho.templates import CAMPOS_CERTIDAO

from conftest import pagina

PAGINA_1 = [
    ("PODER JUDICIÁRIO", 0.93),
    ("TRIBUNAL DE JUSTIÇA DO ESTADO DA PARAÍBA", 0.90),
    ("DIRETORIA ESPECIAL", 0.80),
    ("DESPACHO", 0.75),
    ("Trata-se do processo administrativo SEI nº 123456-78.2024.1.02 que versa sobre o pagamento", 0.60),
    ("de honorários ao perito nomeado nos autos da ação judicial", 0.58),
    ("Os honorários periciais foram arbitrados em R$ 1.234,56 pelo juízo", 0.45),
    ("Interessado: Maria Souza Lima", 0.35),
]
PAGINA_2 = [("Os autos seguem para as providências de praxe", 0.60)]
PAGINA_3 = [("Documento assinado eletronicamente por João Silva, Diretor Especial, em 05/03/2024", 0.08)]
PAGINA_CERTIDAO = [
    ("PODER JUDICIÁRIO", 0.93),
    ("TRIBUNAL DE JUSTIÇA DO ESTADO DA PARAÍBA", 0.90),
    ("CERTIDÃO", 0.80),
    ("CERTIFICO que o Conselho da Magistratura autorizou o pagamento", 0.60),
    ("de honorários no valor de R$ 3.000,00", 0.58),
    ("João Pessoa, 10 de abril de 2024", 0.40),
    ("Robson Lima Ferreira", 0.08),
]


def _dados(marcadores=(Marcador(titulo="Despacho", pagina=1),), extras=()):
    linhas = [PAGINA_1, PAGINA_2, PAGINA_3, *extras]
    return DadosPdf(
        nome_arquivo="processo.pdf",
        paginas=[pagina(i, l) for i, l in enumerate(linhas, start=1)],
        marcadores=list(marcadores),
    )


@pytest.fixture
def resultado():
    return extrair_despacho(_dados())


class TestDespacho:
    def test_documento_unico_no_intervalo_do_marcador(self, resultado):
        assert "extraction_failed" not in resultado.erros
        assert "no_candidates_found" not in resultado.erros
        assert len(resultado.documentos) == 1
        doc = resultado.documentos[0]
        assert doc.tipo == TIPO_DESPACHO
        assert (doc.pagina_inicio, doc.pagina_fim) == (1, 3)
        assert "missing_process_numbers" not in doc.avisos

    def test_processo_administrativo(self, resultado):
        campo = resultado.documentos[0].campos["PROCESSO_ADMINISTRATIVO"]
        assert campo.valor == "123456-78.2024.1.02"
        assert campo.confianca == pytest.approx(0.75)
        assert campo.metodo == "regex"
        assert campo.pagina == 1

    def test_assinante_no_rodape(self, resultado):
        campo = resultado.documentos[0].campos["ASSINANTE"]
        assert campo.valor == "João Silva"
        assert campo.confianca == pytest.approx(0.82)
        assert campo.metodo == "footer"
        assert campo.pagina == 3

    def test_valor_arbitrado_pelo_juizo_na_primeira_pagina(self, resultado):
        campo = resultado.documentos[0].campos["VALOR_ARBITRADO_JZ"]
        assert campo.valor == "R$ 1.234,56"
        assert campo.pagina == 1
        assert campo.evidencia.bbox is not None

    def test_perito_e_campos_ausentes(self, resultado):
        campos = resultado.documentos[0].campos
        assert campos["PERITO"].valor == "Maria Souza Lima"
        assert campos["PROCESSO_JUDICIAL"].valor == "-"
        assert campos["CPF_PERITO"].metodo == "not_found"

    def test_assinaturas_mescladas(self, resultado):
        metodos = {a.metodo for a in resultado.assinaturas}
        assert metodos == {"text_anchor", "field_assinante"}
        assert all(a.assinante == "João Silva" for a in resultado.assinaturas)

    def test_metadados(self, resultado):
        assert resultado.pdf.paginas == 3
        assert resultado.pdf.nome_arquivo == "processo.pdf"
        assert resultado.pdf.sha256 == ""
        assert resultado.execucao.versao_config == ConfigExtrator().versao
        assert resultado.execucao.inicio <= resultado.execucao.fim
        assert [m.titulo for m in resultado.marcadores] == ["Despacho"]
        assert len(resultado.candidatas) == 1


class TestErros:
    def test_intervalo_curto(self):
        r = extrair_despacho(_dados(marcadores=(Marcador(titulo="Despacho", pagina=1),
                                                Marcador(titulo="Anexo", pagina=2))))
        assert "range_below_min_pages" in r.erros
        assert r.documentos == []

    def test_ancoras_sem_marcadores_nao_geram_candidatas(self):
        r = extrair_despacho(_dados(marcadores=()))
        assert r.erros == ["no_candidates_found"]
        assert r.candidatas == []
        assert r.documentos == []

    def test_janela_heuristica_em_pdf_de_uma_pagina(self):
        dados = DadosPdf(
            nome_arquivo="curto.pdf",
            paginas=[pagina(1, PAGINA_1)],
            marcadores=[Marcador(titulo="Diretoria Especial", pagina=1)],
        )
        r = extrair_despacho(dados)
        assert r.candidatas[0].fonte == FONTE_HEURISTICA
        assert (r.candidatas[0].pagina_inicio, r.candidatas[0].pagina_fim) == (1, 1)
        assert "range_below_min_pages" in r.erros
        assert r.documentos == []

    def test_pdf_inexistente(self, tmp_path):
        r = extrair_pdf(tmp_path / "nao_existe.pdf")
        assert r.erros == ["no_candidates_found"]
        assert r.pdf.paginas == 0


def test_numero_sei_seguido_de_referencia_de_pagina():
    pagina_1 = [*PAGINA_1[:4], ("Processo SEI nº 123456-78.2024.1.02/pg. 3", 0.60), *PAGINA_1[5:]]
    dados = _dados()
    dados.paginas[0] = pagina(1, pagina_1)

    campo = extrair_despacho(dados).documentos[0].campos["PROCESSO_ADMINISTRATIVO"]
    assert campo.valor == "123456-78.2024.1.02"


class TestCatalogo:
    def test_especialidade_vem_do_catalogo(self, tmp_path):
        csv = tmp_path / "peritos.csv"
        csv.write_text("PERITO,CPF,ESPECIALIDADE\nMaria Souza Lima,,Psicologia\n", encoding="utf-8")
        config = ConfigExtrator(referencia=ConfigReferencia(catalogos_peritos=(str(csv),)))

        campos = extrair_despacho(_dados(), config).documentos[0].campos
        assert campos["ESPECIALIDADE"].valor == "Psicologia"
        assert campos["ESPECIALIDADE"].metodo == "catalogo_peritos"
        assert campos["ESPECIALIDADE"].confianca == pytest.approx(0.75)
        assert campos["PERITO"].metodo == "regex"


class TestCertidao:
    def test_documento_da_certidao(self):
        dados = _dados(
            marcadores=(Marcador(titulo="Despacho", pagina=1), Marcador(titulo="Certidão", pagina=4)),
            extras=(PAGINA_CERTIDAO,),
        )
        r = extrair_despacho(dados)
        assert [d.tipo for d in r.documentos] == [TIPO_DESPACHO, TIPO_CERTIDAO]

        despacho, certidao = r.documentos
        assert (despacho.pagina_inicio, despacho.pagina_fim) == (1, 3)
        assert (certidao.pagina_inicio, certidao.pagina_fim) == (4, 4)
        assert list(certidao.campos) == sorted(CAMPOS_CERTIDAO)
        assert certidao.campos["VALOR_ARBITRADO_CM"].valor == "R$ 3.000,00"
        assert certidao.avisos == []


class TestLog:
    def test_callback_recebe_cada_entrada(self):
        recebidas = []
        r = extrair_despacho(_dados(), callback=recebidas.append)
        assert recebidas == r.logs
        mensagens = [e.mensagem for e in recebidas]
        assert mensagens[0] == "bookmarks_loaded"
        assert "range_final" in mensagens

    def test_registrar_regioes(self):
        r = extrair_despacho(_dados(), opcoes=OpcoesExtracao(registrar_regioes=True))
        nomes = {e.dados["name"] for e in r.logs if e.mensagem == "region_text"}
        assert {"first_top", "last_bottom"} <= nomes


def test_filtrar_campos():
    campos = {"DATA": nao_encontrado(), "PERITO": nao_encontrado()}
    filtrados = filtrar_campos(campos, ["DATA", "PARCELA"])
    assert list(filtrados) == ["DATA", "PARCELA"]
    assert filtrados["PARCELA"].confianca == 0.0


def test_trechos_com_dicas():
    trechos = trechos_com_dicas("Autorizo a despesa conforme a GEORC", ["autorizo a despesa", "georc"], janela=20)
    assert len(trechos) == 2
    assert trechos[0].startswith("autorizo")
