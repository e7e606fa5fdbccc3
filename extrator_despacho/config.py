# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/config.py — Configuração imutável da extração
# ══════════════════════════════════════════════════════════════════════
"""
Configuração única, imutável, passada explicitamente para o extrator.

Todos os limiares ajustados contra lotes reais (tolerâncias de Y, score
mínimo, tolerância de valor etc.) ficam aqui, nunca como constantes
espalhadas pelo código. Os padrões abaixo correspondem aos despachos da
Diretoria Especial do TJPB; um YAML pode sobrescrever qualquer seção.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

log = logging.getLogger("extrator_despacho")


class _Secao(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


# ══════════════════════════════════════════════════════════════════════
# LIMIARES
# ══════════════════════════════════════════════════════════════════════

class ConfigDocumento(_Secao):
    min_paginas: int = 2
    max_paginas: int = 6


class ConfigFaixas(_Secao):
    """Frações da altura da página (medidas a partir do topo/base)."""

    cabecalho_topo: float = 0.15
    subcabecalho: float = 0.15
    rodape_base: float = 0.15


class ConfigSegmentacao(_Secao):
    juncao_linha_y: float = 0.015
    intervalo_paragrafo_y: float = 0.03
    intervalo_palavra_x: float = 0.012


class ConfigCorrespondencia(_Secao):
    score_minimo: float = 0.70


# ══════════════════════════════════════════════════════════════════════
# ÂNCORAS E DICAS
# ══════════════════════════════════════════════════════════════════════

class ConfigAncoras(_Secao):
    cabecalho: tuple[str, ...] = (
        "poder judiciario",
        "tribunal de justica do estado da paraiba",
    )
    subcabecalho: tuple[str, ...] = ("diretoria especial",)
    titulo: tuple[str, ...] = ("despacho",)
    rodape: tuple[str, ...] = ("assinado eletronicamente",)
    dicas_assinante: tuple[str, ...] = ("robson",)


class ConfigRegiaoTemplate(_Secao):
    min_y: float = 0.0
    max_y: float = 1.0
    templates: tuple[str, ...] = ()


class ConfigRegioesTemplate(_Secao):
    primeira_pagina_topo: ConfigRegiaoTemplate = ConfigRegiaoTemplate(min_y=0.55, max_y=1.0)
    ultima_pagina_base: ConfigRegiaoTemplate = ConfigRegiaoTemplate(min_y=0.0, max_y=0.45)
    certidao_completa: ConfigRegiaoTemplate = ConfigRegiaoTemplate()
    certidao_valor_data: ConfigRegiaoTemplate = ConfigRegiaoTemplate()
    intervalo_palavra_x: float = 0.012


class ConfigTipoDespacho(_Secao):
    dicas_autorizacao: tuple[str, ...] = (
        "autorizo a despesa",
        "autorizo o pagamento",
        "defiro o pagamento",
    )
    dicas_georc: tuple[str, ...] = (
        "georc",
        "reserva orcamentaria",
        "gerencia de orcamento",
    )
    dicas_conselho: tuple[str, ...] = ("conselho da magistratura",)
    padroes_valor_de: tuple[str, ...] = ()


class ConfigCertidao(_Secao):
    dicas_cabecalho: tuple[str, ...] = ("poder judiciario", "tribunal de justica")
    dicas_titulo: tuple[str, ...] = ("certidao",)
    dicas_corpo: tuple[str, ...] = ("certifico", "conselho da magistratura")
    dicas_data: tuple[str, ...] = ("sessao", "julgamento", "joao pessoa")


class ConfigRegex(_Secao):
    processo_cnj: str = r"\b\d{7}-\d{2}\.\d{4}\.\d\.\d{2}\.\d{4}\b"
    processo_sei: str = r"\b\d{6}-\d{2}\.\d{4}\.\d\.\d{2}\b"
    processo_adme: str = r"\bADME\s*(?:n[ºo°]\.?\s*)?\d{3,}(?:[./-]\d+)*"
    cpf: str = r"\b\d{3}\.?\d{3}\.?\d{3}-?\d{2}\b"
    valor: str = r"R\$\s*\d{1,3}(?:\.\d{3})*,\d{2}"
    data_extenso: str = r"\b\d{1,2}\s+de\s+[^\W\d_]+\s+de\s+\d{4}\b"
    data_barra: str = r"\b\d{1,2}/\d{1,2}/\d{2,4}\b"


class ConfigPrioridades(_Secao):
    rotulos_processo_admin: tuple[str, ...] = (
        "processo administrativo", "processo sei", "processo", "sei", "adme",
    )
    rotulos_perito: tuple[str, ...] = ("perito", "perita", "interessado", "interessada")
    rotulos_vara: tuple[str, ...] = ("vara", "juizo")
    rotulos_comarca: tuple[str, ...] = ("comarca",)
    rotulos_promovente: tuple[str, ...] = ("promovente", "autor", "requerente")
    rotulos_promovido: tuple[str, ...] = ("promovido", "reu", "requerido")


class ConfigCampo(_Secao):
    templates: tuple[str, ...] = ()
    rotulos: tuple[str, ...] = ()
    dicas: tuple[str, ...] = ()


class ConfigEstrategias(_Secao):
    habilitado: bool = True
    diretorio: str = ""
    arquivos: tuple[str, ...] = ()


# ══════════════════════════════════════════════════════════════════════
# REFERÊNCIAS (catálogos)
# ══════════════════════════════════════════════════════════════════════

class MapaArea(_Secao):
    area: str
    palavras_chave: tuple[str, ...] = ()


class ConfigHonorarios(_Secao):
    caminho_tabela: str = ""
    caminho_aliases: str = ""
    mapa_areas: tuple[MapaArea, ...] = ()
    tolerancia_valor: float = 0.15
    preferir_valor_de: bool = True
    permitir_valor_jz: bool = False


class ConfigReferencia(_Secao):
    catalogos_peritos: tuple[str, ...] = ()
    honorarios: ConfigHonorarios = ConfigHonorarios()


# ══════════════════════════════════════════════════════════════════════
# CONFIGURAÇÃO RAIZ
# ══════════════════════════════════════════════════════════════════════

class ConfigExtrator(_Secao):
    versao: str = "2025-12-19"
    base_dir: str = ""
    documento: ConfigDocumento = ConfigDocumento()
    faixas: ConfigFaixas = ConfigFaixas()
    segmentacao: ConfigSegmentacao = ConfigSegmentacao()
    correspondencia: ConfigCorrespondencia = ConfigCorrespondencia()
    ancoras: ConfigAncoras = ConfigAncoras()
    regioes_template: ConfigRegioesTemplate = ConfigRegioesTemplate()
    tipo_despacho: ConfigTipoDespacho = ConfigTipoDespacho()
    certidao: ConfigCertidao = ConfigCertidao()
    regex: ConfigRegex = ConfigRegex()
    prioridades: ConfigPrioridades = ConfigPrioridades()
    campos: dict[str, ConfigCampo] = Field(default_factory=dict)
    estrategias: ConfigEstrategias = ConfigEstrategias()
    referencia: ConfigReferencia = ConfigReferencia()

    def campo(self, nome: str) -> ConfigCampo:
        """Configuração de um campo (PERITO, DATA...), vazia se ausente."""
        return self.campos.get(nome.upper(), ConfigCampo())

    def resolver_caminho(self, caminho: str) -> Path:
        p = Path(caminho)
        if p.is_absolute() or not self.base_dir:
            return p.resolve()
        return (Path(self.base_dir) / p).resolve()


class OpcoesExtracao(_Secao):
    """Opções por chamada (não fazem parte da configuração compartilhada)."""

    filtro_marcador: str = ""
    numero_processo: str = ""
    assinantes_rodape: tuple[str, ...] = ()
    assinatura_rodape_bruta: Optional[str] = None
    registrar_regioes: bool = False


# ══════════════════════════════════════════════════════════════════════
# CARGA
# ══════════════════════════════════════════════════════════════════════

def carregar_config(caminho: str | Path | None = None) -> ConfigExtrator:
    """
    Carrega a configuração de um YAML. Sem caminho, arquivo ausente ou
    conteúdo inválido → configuração padrão (com aviso no log).

    Caminhos relativos do YAML (catálogos, estratégias) são resolvidos
    a partir de `base_dir`, que por padrão é a pasta do próprio YAML.
    """
    if caminho is None:
        return ConfigExtrator()

    arquivo = Path(caminho)
    if not arquivo.exists():
        log.warning("[CONFIG] Arquivo não encontrado: %s; usando padrões", arquivo)
        return ConfigExtrator()

    try:
        with arquivo.open(encoding="utf-8") as f:
            dados = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        log.warning("[CONFIG] Falha ao ler %s (%s); usando padrões", arquivo, e)
        return ConfigExtrator()

    if not isinstance(dados, dict):
        log.warning("[CONFIG] Conteúdo inesperado em %s; usando padrões", arquivo)
        return ConfigExtrator()

    dados.setdefault("base_dir", str(arquivo.resolve().parent))
    campos = dados.get("campos")
    if isinstance(campos, dict):
        dados["campos"] = {str(k).upper(): v for k, v in campos.items()}

    try:
        return ConfigExtrator.model_validate(dados)
    except ValidationError as e:
        log.warning("[CONFIG] Configuração inválida em %s (%s); usando padrões",
                    arquivo, e.error_count())
        return ConfigExtrator()


# ══════════════════════════════════════════════════════════════════════
# PADRÕES COMPILADOS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PadroesRegex:
    cnj: re.Pattern
    sei: re.Pattern
    adme: re.Pattern
    cpf: re.Pattern
    valor: re.Pattern
    data_extenso: re.Pattern
    data_barra: re.Pattern


@lru_cache(maxsize=8)
def compilar_padroes(regex: ConfigRegex) -> PadroesRegex:
    """Compila os padrões (sem caixa). Padrão inválido → o padrão embutido."""
    padrao = ConfigRegex()
    compilados = {}
    for nome in ConfigRegex.model_fields:
        try:
            compilados[nome] = re.compile(getattr(regex, nome), re.IGNORECASE)
        except re.error as e:
            log.warning("[CONFIG] Regex inválida em regex.%s (%s); usando a padrão", nome, e)
            compilados[nome] = re.compile(getattr(padrao, nome), re.IGNORECASE)
    return PadroesRegex(
        cnj=compilados["processo_cnj"],
        sei=compilados["processo_sei"],
        adme=compilados["processo_adme"],
        cpf=compilados["cpf"],
        valor=compilados["valor"],
        data_extenso=compilados["data_extenso"],
        data_barra=compilados["data_barra"],
    )
