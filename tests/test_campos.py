from datetime import date, timedelta

import pytest

from extrator_despacho.campos import CAMPOS, ExtratorCampos, contexto_tem_processos, data_recente
from extrator_despacho.modelos import Assinatura, ContextoDespacho, Regiao, SegmentoBanda
from extrator_despacho.texto import unir_bbox

from conftest import linha_de_palavras, paragrafo

MESES = ("janeiro", "fevereiro", "março", "abril", "maio", "junho", "julho",
         "agosto", "setembro", "outubro", "novembro", "dezembro")


@pytest.fixture
def extrator(config):
    return ExtratorCampos(config)


def _ctx(*textos, segmentos=(), regioes=(), **kwargs):
    paragrafos = [paragrafo(t, pagina=1, y=0.6 - 0.05 * i, indice=i) for i, t in enumerate(textos)]
    dados = dict(pagina_inicio=1, pagina_fim=2, nome_arquivo="despacho.pdf")
    dados.update(kwargs)
    return ContextoDespacho(paragrafos=paragrafos, segmentos=list(segmentos), regioes=list(regioes), **dados)


def _rodape(texto, pagina=2):
    palavras = linha_de_palavras(texto, 0.08)
    return SegmentoBanda(pagina=pagina, banda="footer", texto=texto, palavras=palavras, bbox=unir_bbox(palavras))


def _por_extenso(d):
    return f"{d.day} de {MESES[d.month - 1]} de {d.year}"


class TestProcessos:
    def test_sei_em_paragrafo_rotulado(self, extrator):
        ctx = _ctx("Trata-se do processo administrativo SEI nº 123456-78.2024.1.02 "
                   "que versa sobre o pagamento de honorários periciais")
        campo = extrator.processo_administrativo(ctx)
        assert campo.valor == "123456-78.2024.1.02"
        assert campo.confianca == pytest.approx(0.75)
        assert campo.metodo == "regex"
        assert campo.evidencia.bbox is not None

    def test_adme(self, extrator):
        ctx = _ctx("Trata-se do Processo ADME nº 4521/2024, referente ao pagamento de honorários periciais")
        campo = extrator.processo_administrativo(ctx)
        assert campo.valor == "ADME nº 4521/2024"
        assert campo.confianca == pytest.approx(0.7)

    def test_nome_do_arquivo_como_ultimo_recurso(self, extrator):
        campo = extrator.processo_administrativo(_ctx(nome_arquivo="processo 123456-78.2024.1.02.pdf"))
        assert campo.valor == "123456-78.2024.1.02"
        assert campo.metodo == "filename_fallback"
        assert campo.confianca == pytest.approx(0.35)
        assert campo.pagina == 0

    def test_processo_judicial_com_vara(self, extrator):
        ctx = _ctx("Autos do processo 0801234-56.2023.8.15.0001 em trâmite na 2ª Vara Cível da Capital")
        campo = extrator.processo_judicial(ctx)
        assert campo.valor == "0801234-56.2023.8.15.0001"
        assert campo.confianca == pytest.approx(0.8)

    def test_processo_judicial_ausente(self, extrator):
        assert not extrator.processo_judicial(_ctx("Sem número de processo")).encontrado


class TestPartesEVara:
    def test_movida_por_em_face_de(self, extrator):
        ctx = _ctx("Ação movida por José Pereira em face de Carlos Mendes, perante o juízo")
        promovente, promovido = extrator.partes(ctx)
        assert promovente.valor == "José Pereira"
        assert promovido.valor == "Carlos Mendes"
        assert promovente.confianca == pytest.approx(0.7)

    def test_partes_por_rotulo(self, extrator):
        promovente, promovido = extrator.partes(_ctx("Requerente: Antônio Carlos"))
        assert promovente.valor == "Antônio Carlos"
        assert promovente.confianca == pytest.approx(0.65)
        assert not promovido.encontrado

    def test_vara_e_comarca(self, extrator):
        vara, comarca = extrator.vara_comarca(_ctx("Vara: 2ª Vara Cível", "Comarca: Campina Grande"))
        assert vara.valor == "2ª Vara Cível"
        assert comarca.valor == "Campina Grande"
        assert comarca.confianca == pytest.approx(0.7)


class TestPerito:
    def test_perito_e_cpf(self, extrator):
        ctx = _ctx("Interessado: Ana Beatriz Costa, CPF 123.456.789-09")
        assert extrator.perito(ctx).valor == "Ana Beatriz Costa"
        cpf = extrator.cpf_perito(ctx)
        assert cpf.valor == "12345678909"
        assert cpf.confianca == pytest.approx(0.75)

    def test_especialidade_e_especie_derivada(self, extrator):
        ctx = _ctx("Nomeio a perita em Psicologia Forense, para atuar nos autos")
        esp = extrator.especialidade(ctx)
        assert esp.valor == "Psicologia Forense"
        especie = extrator.especie(ctx, esp)
        assert especie.valor == "psicologica"
        assert especie.metodo == "heuristic"
        assert especie.confianca == pytest.approx(0.55)

    def test_especie_no_texto(self, extrator):
        ctx = _ctx("Determino a perícia nos autos e a perícia psicológica da menor")
        especie = extrator.especie(ctx, extrator.especialidade(ctx))
        assert especie.valor == "psicológica"
        assert especie.confianca == pytest.approx(0.7)

    def test_num_perito(self, extrator):
        campo = extrator.num_perito(_ctx("Servidor de matrícula 123456 lotado na Diretoria"))
        assert campo.valor == "123456"
        assert campo.confianca == pytest.approx(0.55)


class TestData:
    def test_data_recente(self):
        hoje = date(2024, 6, 15)
        assert data_recente("2019-06-15", hoje)
        assert not data_recente("2019-06-14", hoje)
        assert data_recente("2024-06-16", hoje)
        assert not data_recente("2024-06-17", hoje)
        assert not data_recente(None, hoje)
        assert not data_recente("invalida", hoje)

    def test_data_no_rodape(self, extrator):
        d = date.today() - timedelta(days=10)
        ctx = _ctx(segmentos=[_rodape(f"João Pessoa, {_por_extenso(d)}")])
        campo = extrator.data(ctx)
        assert campo.valor == d.strftime("%d/%m/%Y")
        assert campo.confianca == pytest.approx(0.8)
        assert campo.pagina == 2

    def test_data_antiga_e_ignorada(self, extrator):
        ctx = _ctx(segmentos=[_rodape("João Pessoa, 10 de abril de 2010")])
        assert not extrator.data(ctx).encontrado


class TestAssinante:
    def test_anuncio_no_rodape(self, extrator):
        ctx = _ctx(segmentos=[_rodape(
            "Documento assinado eletronicamente por João Silva, Diretor Especial, em 05/03/2024")])
        campo = extrator.assinante(ctx)
        assert campo.valor == "João Silva"
        assert campo.confianca == pytest.approx(0.82)
        assert campo.metodo == "footer"
        assert campo.pagina == 2

    def test_rodape_pje(self, extrator):
        ctx = _ctx(segmentos=[_rodape("Número do documento: 2403051234 Assinado por: MARIA DAS DORES - 05/03/2024")])
        campo = extrator.assinante(ctx)
        assert campo.valor == "MARIA DAS DORES"
        assert campo.metodo == "footer:pje"
        assert campo.confianca == pytest.approx(0.7)

    def test_linha_do_diretor(self, extrator):
        texto = "Robson Lima Ferreira – Diretor Especial"
        palavras = linha_de_palavras(texto, 0.2)
        regiao = Regiao(nome="last_bottom", pagina=2, texto=texto, palavras=palavras, bbox=unir_bbox(palavras))
        campo = extrator.assinante(_ctx(regioes=[regiao]))
        assert campo.valor == "Robson Lima Ferreira"
        assert campo.metodo == "director_line"
        assert campo.confianca == pytest.approx(0.82)

    def test_assinantes_conhecidos_do_rodape(self, extrator):
        ctx = _ctx(assinantes_rodape=["Maria Dores", "Robson Lima Ferreira"])
        campo = extrator.assinante(ctx)
        assert campo.valor == "Robson Lima Ferreira"
        assert campo.metodo == "footer_signers"
        assert campo.confianca == pytest.approx(0.72)

    def test_assinatura_digital(self, extrator):
        ctx = _ctx(assinaturas=[Assinatura(metodo="digital", campo="Sig1",
                                           assinante="ROBSON LIMA FERREIRA", pagina=2)])
        campo = extrator.assinante(ctx)
        assert campo.valor == "ROBSON LIMA FERREIRA"
        assert campo.metodo == "digital_signature"
        assert campo.confianca == pytest.approx(0.9)
        assert campo.pagina == 2

    def test_sem_assinante(self, extrator):
        assert extrator.assinante(_ctx("Texto sem assinatura")).valor == "-"


class TestExtrairTodos:
    def test_todos_os_campos_presentes(self, extrator):
        ctx = _ctx(
            "Trata-se do processo administrativo SEI nº 123456-78.2024.1.02 "
            "que versa sobre o pagamento de honorários periciais",
            "Os honorários periciais foram arbitrados em R$ 1.234,56 pelo juízo",
            "Interessado: Ana Beatriz Costa",
        )
        campos = extrator.extrair_todos(ctx)
        assert list(campos) == list(CAMPOS)
        assert campos["PROCESSO_ADMINISTRATIVO"].valor == "123456-78.2024.1.02"
        assert campos["VALOR_ARBITRADO_JZ"].valor == "R$ 1.234,56"
        assert campos["PERITO"].valor == "Ana Beatriz Costa"
        assert campos["VALOR_ARBITRADO_CM"].valor == "-"
        assert campos["VALOR_ARBITRADO_CM"].metodo == "not_found"
        assert contexto_tem_processos(campos)

    def test_sem_processos(self, extrator):
        campos = extrator.extrair_todos(_ctx("Nada aqui"))
        assert not contexto_tem_processos(campos)
