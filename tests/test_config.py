from pathlib import Path

import pytest

from extrator_despacho.__main__ import main
from extrator_despacho.config import ConfigExtrator, ConfigFaixas, ConfigRegex, carregar_config, compilar_padroes
from extrator_despacho.registro import RegistroExecucao

CONFIG_TJPB = Path(__file__).parent.parent / "config" / "tjpb.yml"


class TestCarga:
    def test_sem_caminho_usa_padrao(self):
        assert carregar_config(None) == ConfigExtrator()

    def test_arquivo_ausente(self, tmp_path):
        assert carregar_config(tmp_path / "nao_existe.yml") == ConfigExtrator()

    @pytest.mark.parametrize("conteudo", [
        "documento: [1, 2",        # YAML quebrado
        "- apenas\n- uma lista\n",  # não é um mapa
        "documento:\n  min_paginas: muitas\n",
    ])
    def test_conteudo_invalido(self, tmp_path, conteudo):
        arquivo = tmp_path / "config.yml"
        arquivo.write_text(conteudo, encoding="utf-8")
        assert carregar_config(arquivo) == ConfigExtrator()

    def test_sobrescreve_secoes_e_normaliza_campos(self, tmp_path):
        arquivo = tmp_path / "config.yml"
        arquivo.write_text(
            "documento:\n  max_paginas: 8\n"
            "campos:\n  perito:\n    templates: ['Interessado: {{value}}']\n",
            encoding="utf-8",
        )
        config = carregar_config(arquivo)
        assert config.documento.max_paginas == 8
        assert config.documento.min_paginas == 2
        assert set(config.campos) == {"PERITO"}
        assert config.campo("perito").templates == ("Interessado: {{value}}",)
        assert config.campo("VARA").templates == ()
        assert Path(config.base_dir) == tmp_path.resolve()
        assert config.resolver_caminho("dados/peritos.csv") == tmp_path.resolve() / "dados" / "peritos.csv"

    def test_config_do_tribunal(self):
        config = carregar_config(CONFIG_TJPB)
        assert config.versao == "2025-12-19"
        assert config.estrategias.diretorio == "estrategias"
        assert config.resolver_caminho(config.estrategias.diretorio).is_dir()
        assert "PERITO" in config.campos
        assert config.referencia.honorarios.mapa_areas

    def test_chave_de_faixa_desconhecida_e_ignorada(self, tmp_path):
        arquivo = tmp_path / "config.yml"
        arquivo.write_text("faixas:\n  inicio_corpo: 0.3\n  rodape_base: 0.2\n", encoding="utf-8")
        config = carregar_config(arquivo)
        assert config.faixas.rodape_base == 0.2
        assert "inicio_corpo" not in ConfigFaixas.model_fields


def test_regex_invalida_volta_ao_padrao():
    padroes = compilar_padroes(ConfigRegex(cpf="(\\d{3}"))
    assert padroes.cpf.pattern == ConfigRegex().cpf
    assert padroes.valor.search("pagamento de r$ 10,00")


class TestRegistro:
    def test_acumula_e_repassa(self):
        destino, recebidas = [], []
        registro = RegistroExecucao(destino, recebidas.append)
        registro.info("bookmarks_loaded", count=3)
        registro.aviso("range_below_min_pages", startPage1=1, endPage1=1)

        assert destino == recebidas
        assert [(e.nivel, e.mensagem) for e in destino] == [
            ("info", "bookmarks_loaded"),
            ("warn", "range_below_min_pages"),
        ]
        assert destino[0].dados == {"count": 3}
        assert destino[0].em

    def test_sem_callback(self):
        destino = []
        RegistroExecucao(destino).registrar("debug", "region_text", name="first_top")
        assert destino[0].nivel == "debug"


def test_linha_de_comando_sem_argumentos(capsys):
    assert main([]) == 2
    assert "python -m extrator_despacho" in capsys.readouterr().out


def test_linha_de_comando_com_pdf_ausente(tmp_path, capsys):
    assert main([str(tmp_path / "nao_existe.pdf")]) == 0
    assert "no_candidates_found" in capsys.readouterr().out
