import pytest

from extrator_despacho.config import ConfigEstrategias, ConfigExtrator, compilar_padroes
from extrator_despacho.estrategias import (
    DefinicaoEstrategia,
    MotorEstrategias,
    bbox_por_tokens,
    carregar_estrategias,
    mapear_campo,
    normalizar_valor_campo,
    peso_origem,
    score_para_confianca,
)
from extrator_despacho.modelos import ContextoDespacho

from conftest import linha_de_palavras, paragrafo

ESTRATEGIA_PERITO = """
fields: [PERITO, Especialidade]
priority: 1.0
patterns:
  - type: regex
    label: perito_nomeado
    field: PERITO
    pattern: "nomeou\\\\s+(?:o|a)\\\\s+perit[oa]\\\\s+([^,]+)"
    weight: 1.0
  - type: keyword
    label: pericia_medica
    field: Especialidade
    pattern: "perícia médica"
    value: "Medicina"
    weight: 1.0
"""


def _config_com_estrategias(pasta):
    return ConfigExtrator(estrategias=ConfigEstrategias(habilitado=True, diretorio=str(pasta)))


def _contexto(*textos, nome_arquivo="despacho.pdf"):
    return ContextoDespacho(
        paragrafos=[paragrafo(t, pagina=1, y=0.6 - 0.1 * i, indice=i) for i, t in enumerate(textos)],
        nome_arquivo=nome_arquivo,
        pagina_inicio=1,
        pagina_fim=2,
    )


class TestPesos:
    def test_confianca_limitada(self):
        assert score_para_confianca(1.0, 1.0, 1.0, 1.0, 1.0) == pytest.approx(0.45 + 0.45 * (1 / 1.6))
        assert score_para_confianca(10, 10, 10, 10, 10) == pytest.approx(0.9)
        assert score_para_confianca(0, 0, 0, 0, 0) >= 0.45

    def test_peso_origem(self):
        sem_origem = DefinicaoEstrategia()
        assert peso_origem(sem_origem, "qualquer.pdf") == (1.0, 1.0)

        com_origem = DefinicaoEstrategia.model_validate(
            {"sources": [{"bucket": "principal", "name_matches": ["*despacho*"]}]})
        assert peso_origem(com_origem, "Despacho_123.pdf") == (1.0, 1.0)
        assert peso_origem(com_origem, "laudo.pdf") == (0.7, 0.85)

    def test_mapear_campo(self):
        assert mapear_campo("Valor arbitrado - JZ") == "VALOR_ARBITRADO_JZ"
        assert mapear_campo("Data da autorização da despesa") == "DATA"
        assert mapear_campo("CPF/CNPJ") == "CPF_PERITO"
        assert mapear_campo("campo desconhecido") == ""

    def test_normalizar_valor_campo(self, config):
        padroes = compilar_padroes(config.regex)
        assert normalizar_valor_campo("DATA", "5 de março de 2024", padroes) == "05/03/2024"
        assert normalizar_valor_campo("VALOR_ARBITRADO_DE", "R$ 800,00", padroes) == "R$ 800,00"
        assert normalizar_valor_campo("CPF_PERITO", "123.456.789-09", padroes) == "12345678909"


def test_bbox_por_tokens():
    palavras = linha_de_palavras("a perita Maria Clara", 0.5)
    texto = "a perita Maria Clara"
    caixa = bbox_por_tokens(texto, palavras, 9, len("Maria Clara"))
    assert caixa.x0 == palavras[2].x0
    assert caixa.x1 == palavras[3].x1
    assert bbox_por_tokens(texto, palavras, 0, 0) is None


class TestMotor:
    def test_sem_estrategias(self, config):
        assert carregar_estrategias(config) == ()
        assert MotorEstrategias(config).extrair(_contexto("qualquer texto")) == {}

    def test_regex_e_palavra_chave(self, tmp_path):
        (tmp_path / "perito.yml").write_text(ESTRATEGIA_PERITO, encoding="utf-8")
        motor = MotorEstrategias(_config_com_estrategias(tmp_path))
        campos = motor.extrair(_contexto(
            "O juízo nomeou a perita Maria Clara Nunes, para realizar perícia médica nos autos",
        ))

        perito = campos["PERITO"]
        assert perito.valor == "Maria Clara Nunes"
        assert perito.metodo == "strategy_regex:perito_nomeado"
        assert perito.confianca == pytest.approx(score_para_confianca(1.0, 1.0, 1.0, 1.0, 0.85))
        assert perito.pagina == 1

        especialidade = campos["ESPECIALIDADE"]
        assert especialidade.valor == "Medicina"
        assert especialidade.metodo == "strategy_keyword:pericia_medica"

    def test_fields_restringe_os_campos_produzidos(self, tmp_path):
        so_perito = ESTRATEGIA_PERITO.replace("fields: [PERITO, Especialidade]", "fields: [PERITO]")
        (tmp_path / "perito.yml").write_text(so_perito, encoding="utf-8")
        motor = MotorEstrategias(_config_com_estrategias(tmp_path))
        campos = motor.extrair(_contexto(
            "O juízo nomeou a perita Maria Clara Nunes, para realizar perícia médica nos autos",
        ))
        assert set(campos) == {"PERITO"}

    def test_arquivo_malformado_e_ignorado(self, tmp_path):
        (tmp_path / "a_quebrado.yml").write_text("fields: [PERITO\npatterns: {", encoding="utf-8")
        (tmp_path / "b_perito.yml").write_text(ESTRATEGIA_PERITO, encoding="utf-8")
        estrategias = carregar_estrategias(_config_com_estrategias(tmp_path))
        assert len(estrategias) == 1

    def test_desabilitado(self, tmp_path):
        (tmp_path / "perito.yml").write_text(ESTRATEGIA_PERITO, encoding="utf-8")
        config = ConfigExtrator(estrategias=ConfigEstrategias(habilitado=False, diretorio=str(tmp_path)))
        assert carregar_estrategias(config) == ()
