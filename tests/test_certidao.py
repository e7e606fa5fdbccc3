import pytest

from extrator_despacho.certidao import (
    MOTIVO_OK,
    localizar_certidao,
    montar_regioes_certidao,
    verificar_pagina_certidao,
)
from extrator_despacho.modelos import AssinaturaDigital, DadosPdf, Marcador, WidgetAssinatura

from conftest import pagina

CABECALHO = [("PODER JUDICIÁRIO", 0.93), ("TRIBUNAL DE JUSTIÇA DO ESTADO DA PARAÍBA", 0.90)]
TITULO = [("CERTIDÃO", 0.80)]
CORPO = [
    ("CERTIFICO que o Conselho da Magistratura autorizou o pagamento", 0.60),
    ("de honorários no valor de R$ 3.000,00", 0.58),
    ("João Pessoa, 10 de abril de 2024", 0.40),
]
RODAPE = [("Robson Lima Ferreira", 0.08)]


def _dados(*paginas, marcadores=(), assinaturas=()):
    return DadosPdf(
        nome_arquivo="autos.pdf",
        paginas=[pagina(i, linhas) for i, linhas in enumerate(paginas, start=1)],
        marcadores=list(marcadores),
        assinaturas=list(assinaturas),
    )


class TestVerificacao:
    def test_pagina_completa(self, config):
        dados = _dados(CABECALHO + TITULO + CORPO + RODAPE)
        assert verificar_pagina_certidao(dados, 1, config) == MOTIVO_OK

    def test_sem_paginas_e_fora_do_intervalo(self, config):
        assert verificar_pagina_certidao(DadosPdf(), 1, config) == "no_pages"
        assert verificar_pagina_certidao(_dados(CORPO), 9, config) == "page_out_of_range"

    @pytest.mark.parametrize("linhas, motivo", [
        (TITULO + CORPO + RODAPE, "missing_header_hint"),
        (CABECALHO + CORPO + RODAPE, "missing_title_hint"),
        (CABECALHO + TITULO + [("Nada a certificar aqui", 0.5)] + RODAPE, "missing_body_or_money"),
        (CABECALHO + TITULO + CORPO + [("Maria Souza", 0.08)], "missing_signer_footer"),
    ])
    def test_motivos_de_recusa(self, config, linhas, motivo):
        assert verificar_pagina_certidao(_dados(linhas), 1, config) == motivo

    def test_assinatura_digital_substitui_o_rodape(self, config):
        assinatura = AssinaturaDigital(campo="Sig1", nome_assinante="ROBSON LIMA FERREIRA",
                                       widgets=[WidgetAssinatura(pagina=1)])
        dados = _dados(CABECALHO + TITULO + CORPO, assinaturas=[assinatura])
        assert verificar_pagina_certidao(dados, 1, config) == MOTIVO_OK

    def test_valor_sem_dica_de_corpo(self, config):
        linhas = CABECALHO + TITULO + [("Pagamento de R$ 3.000,00", 0.5)] + RODAPE
        assert verificar_pagina_certidao(_dados(linhas), 1, config) == MOTIVO_OK


def test_localizar_primeira_pagina_valida(config):
    dados = _dados(
        CABECALHO + TITULO,
        CABECALHO + TITULO + CORPO + RODAPE,
        marcadores=[Marcador(titulo="Certidão", pagina=1,
                             filhos=[Marcador(titulo="Certidão CM", nivel=2, pagina=2)])],
    )
    assert localizar_certidao(dados, config) == 2
    assert localizar_certidao(_dados(CABECALHO + TITULO + CORPO + RODAPE), config) == 0


def test_regioes_da_certidao(config):
    dados = _dados(CABECALHO + TITULO + CORPO + RODAPE)
    regioes = {r.nome: r for r in montar_regioes_certidao(dados, 1, config)}
    assert set(regioes) == {"certidao_full", "certidao_value_date"}

    completa = regioes["certidao_full"]
    assert completa.texto.startswith("CERTIFICO")
    assert "Robson" in completa.texto
    assert (completa.bbox.x0, completa.bbox.x1) == (0.0, 1.0)

    valor_data = regioes["certidao_value_date"]
    assert "3.000,00" in valor_data.texto
    assert "10 de abril de 2024" in valor_data.texto
    assert "Robson" not in valor_data.texto
    assert montar_regioes_certidao(dados, 5, config) == []
