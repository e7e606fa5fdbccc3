from extrator_despacho.janelas import (
    FONTE_HEURISTICA,
    FONTE_MARCADOR,
    achatar_marcadores,
    ajustar_intervalo,
    calcular_densidades,
    intervalo_final,
    intervalos_marcadores,
    janelas_heuristicas,
    melhor_candidata,
    pontuar_candidatas,
)
from extrator_despacho.modelos import DadosPdf, JanelaCandidata, Marcador, MarcadorPlano

from conftest import pagina


def _dados(*textos, marcadores=()):
    paginas = [pagina(i, [(t, 0.5)] if t else []) for i, t in enumerate(textos, start=1)]
    return DadosPdf(nome_arquivo="autos.pdf", paginas=paginas, marcadores=list(marcadores))


class TestMarcadores:
    def test_intervalos_vao_ate_o_proximo_marcador(self):
        marcadores = [
            Marcador(titulo="Petição", pagina=1),
            Marcador(titulo="Despacho", pagina=4, filhos=[Marcador(titulo="Anexo", nivel=2, pagina=6)]),
        ]
        intervalos = intervalos_marcadores(marcadores, 9)
        assert [(i.titulo, i.inicio, i.fim) for i in intervalos] == [
            ("Petição", 1, 3),
            ("Despacho", 4, 5),
            ("Anexo", 6, 9),
        ]

    def test_marcadores_sem_pagina_sao_ignorados(self):
        marcadores = [Marcador(titulo="Sem destino"), Marcador(titulo="Despacho", pagina=2)]
        assert [m.titulo for m in achatar_marcadores(marcadores)] == ["Despacho"]
        assert achatar_marcadores(marcadores)[0].pagina0 == 1

    def test_janelas_heuristicas_sem_repeticao(self):
        planos = [
            MarcadorPlano(titulo="DIESP", pagina=4, pagina0=3),
            MarcadorPlano(titulo="Diretoria Especial", pagina=4, pagina0=3),
            MarcadorPlano(titulo="Petição", pagina=1, pagina0=0),
        ]
        assert janelas_heuristicas(planos, 5) == [(4, 5)]
        assert janelas_heuristicas(planos, 10) == [(4, 5), (4, 6), (4, 7)]


def test_densidade_e_area_das_palavras():
    dados = _dados("abc", "")
    densidades = calcular_densidades(dados)
    assert densidades[1] > 0
    assert densidades[2] == 0.0


class TestPontuacao:
    def test_usa_marcadores_de_despacho(self, config):
        dados = _dados(
            "Petição inicial",
            "PODER JUDICIÁRIO DESPACHO",
            "corpo do despacho",
            "Anexo",
            "Documento assinado eletronicamente",
            marcadores=[
                Marcador(titulo="Petição", pagina=1),
                Marcador(titulo="Despacho DIESP", pagina=2),
                Marcador(titulo="Anexo", pagina=4),
            ],
        )
        candidatas = pontuar_candidatas(dados, config)
        assert len(candidatas) == 1
        janela = candidatas[0]
        assert (janela.pagina_inicio, janela.pagina_fim) == (2, 3)
        assert janela.fonte == FONTE_MARCADOR
        assert janela.sinais["bookmarkTitle"] == "Despacho DIESP"
        assert "HEADER_TJPB" in janela.ancoras
        assert "DESPACHO_TITULO" in janela.ancoras
        assert set(janela.densidade) == {"p2", "p3"}

    def test_filtro_de_marcador(self, config):
        dados = _dados("a", "b", marcadores=[Marcador(titulo="Despacho", pagina=1)])
        candidatas = pontuar_candidatas(dados, config, filtro_marcador="certidão")
        assert len(candidatas) == 1
        assert (candidatas[0].pagina_inicio, candidatas[0].pagina_fim) == (1, 2)
        assert candidatas[0].fonte == FONTE_HEURISTICA

    def test_janelas_heuristicas_sem_marcador_de_despacho(self, config):
        dados = _dados("a", "b", "c", marcadores=[Marcador(titulo="Diretoria Especial", pagina=2)])
        candidatas = pontuar_candidatas(dados, config)
        assert [(c.pagina_inicio, c.pagina_fim) for c in candidatas] == [(2, 3)]
        assert candidatas[0].fonte == FONTE_HEURISTICA

    def test_sem_marcadores(self, config):
        assert pontuar_candidatas(_dados("a", "b"), config) == []

    def test_melhor_candidata_desempata_por_ancoras(self):
        a = JanelaCandidata(pagina_inicio=1, pagina_fim=2, score_edicao=0.5, ancoras=["HEADER_TJPB"])
        b = JanelaCandidata(pagina_inicio=3, pagina_fim=4, score_diff=0.5,
                            ancoras=["HEADER_TJPB", "DESPACHO_TITULO"])
        c = JanelaCandidata(pagina_inicio=5, pagina_fim=6, score_edicao=0.3)
        assert melhor_candidata([a, b, c]) is b
        assert melhor_candidata([]) is None


class TestIntervaloFinal:
    def test_ajuste_volta_ao_cabecalho_e_avanca_ate_o_rodape(self, config):
        dados = _dados("Capa", "PODER JUDICIÁRIO", "corpo", "Documento assinado eletronicamente", "Anexo")
        assert ajustar_intervalo(dados, 3, 3, config) == (2, 4)

    def test_ajuste_limitado_ao_maximo_de_paginas(self, config):
        dados = _dados(*["texto"] * 8)
        assert ajustar_intervalo(dados, 1, 1, config) == (1, config.documento.max_paginas)

    def test_marcador_e_usado_como_esta(self, config):
        dados = _dados("PODER JUDICIÁRIO", "b", "c", "d")
        janela = JanelaCandidata(pagina_inicio=2, pagina_fim=2, sinais={"source": FONTE_MARCADOR})
        assert intervalo_final(dados, janela, config) == (2, 2)

        heuristica = JanelaCandidata(pagina_inicio=2, pagina_fim=2, sinais={"source": FONTE_HEURISTICA})
        assert intervalo_final(dados, heuristica, config) == (1, 4)
