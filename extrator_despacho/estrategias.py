# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/estrategias.py — Regras de campo declaradas em YAML
# ══════════════════════════════════════════════════════════════════════
"""
Estratégias de campo: arquivos YAML com padrões (regex ou palavra-chave)
que produzem candidatos de campo sem mexer no código. Cada arquivo
descreve uma estratégia:

    fields: [PERITO]
    priority: 1.0
    sources:
      - bucket: principal
        name_matches: ["*despacho*"]
    patterns:
      - type: regex
        label: perito_nomeado
        field: PERITO
        pattern: "nomeio\\s+(?:o|a)\\s+perit[oa]\\s+([^,]+)"
        weight: 1.2
    clean: [CleanPerito]
    validate: [ValidatePerito]

Confiança de um acerto:

    score = max(.2, weight) · max(.7, priority) · max(.6, origem)
            · max(.6, bucket) · max(.6, peso do segmento)
    conf  = clamp(0.45 + 0.45 · min(1, score / 1.6), 0.45, 0.92)

`fields` limita os campos que os padrões podem produzir (vazio = todos).
Arquivo malformado não interrompe a extração: é ignorado com aviso.
"""

from __future__ import annotations

import fnmatch
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from extrator_despacho.config import ConfigExtrator, PadroesRegex, compilar_padroes
from extrator_despacho.evidencia import montar_campo
from extrator_despacho.modelos import BBox, Campo, ContextoDespacho, Palavra
from extrator_despacho.texto import (
    formatar_data_br,
    normalizar_cpf,
    normalizar_espacos,
    normalizar_token,
    normalizar_valor,
    parse_data,
    remover_acentos,
    trecho_em_torno,
    unir_bbox,
)

log = logging.getLogger("extrator_despacho")

# Nomes aceitos nos YAML (sem acento, sem separadores) → campo canônico
MAPA_CAMPOS = {
    "PROCESSOJUDICIAL": "PROCESSO_JUDICIAL",
    "PROCESSOADMINISTRATIVO": "PROCESSO_ADMINISTRATIVO",
    "PROMOVENTE": "PROMOVENTE",
    "PROMOVIDO": "PROMOVIDO",
    "PERITO": "PERITO",
    "CPFCNPJ": "CPF_PERITO",
    "CPF": "CPF_PERITO",
    "PROFISSAO": "ESPECIALIDADE",
    "JUIZO": "VARA",
    "VARA": "VARA",
    "COMARCA": "COMARCA",
    "ESPECIALIDADE": "ESPECIALIDADE",
    "ESPECIEDEPERICIA": "ESPECIE_DA_PERICIA",
    "VALORARBITRADOJZ": "VALOR_ARBITRADO_JZ",
    "VALORARBITRADODE": "VALOR_ARBITRADO_DE",
    "VALORARBITRADOCM": "VALOR_ARBITRADO_CM",
    "DATADAAUTORIZACAODADESPESA": "DATA",
    "ADIANTAMENTO": "ADIANTAMENTO",
    "VALORTABELADOANEXOITABELAI": "VALOR_TABELADO_ANEXO_I",
}

_PESOS_BUCKET = {"principal": 1.0, "apoio": 0.85, "laudo": 0.75}
_RE_ANEXO_I = re.compile(r"(anexo\s*[i1]|tabela\s*[i1])", re.IGNORECASE)
_RE_LETRA_PARTE = re.compile(r"[A-Za-zÁÂÃÀÉÊÍÓÔÕÚÇ]")


# ══════════════════════════════════════════════════════════════════════
# DEFINIÇÕES (formato dos YAML)
# ══════════════════════════════════════════════════════════════════════

class _Def(BaseModel):
    model_config = ConfigDict(extra="ignore")


class OrigemEstrategia(_Def):
    bucket: str = ""
    name_matches: list[str] = Field(default_factory=list)


class ComposicaoPadrao(_Def):
    second_field: str = ""


class PadraoEstrategia(_Def):
    type: str = "regex"
    label: str = ""
    pattern: str = ""
    field: str = ""
    weight: float = 1.0
    value: Optional[str] = None
    compose: Optional[ComposicaoPadrao] = None


class DefinicaoEstrategia(_Def):
    fields: list[str] = Field(default_factory=list)
    priority: float = 1.0
    sources: list[OrigemEstrategia] = Field(default_factory=list)
    patterns: list[PadraoEstrategia] = Field(default_factory=list)
    clean: list[str] = Field(default_factory=list)
    validate_: list[str] = Field(default_factory=list, alias="validate")


# ══════════════════════════════════════════════════════════════════════
# CARGA
# ══════════════════════════════════════════════════════════════════════

def _arquivos_estrategia(config: ConfigExtrator) -> list[Path]:
    cfg = config.estrategias
    arquivos: list[Path] = []
    for nome in cfg.arquivos:
        if not nome or not nome.strip():
            continue
        caminho = config.resolver_caminho(nome)
        if caminho.is_file():
            arquivos.append(caminho)
    if cfg.diretorio and cfg.diretorio.strip():
        pasta = config.resolver_caminho(cfg.diretorio)
        if pasta.is_dir():
            arquivos.extend(sorted(pasta.glob("*.yml")))
            arquivos.extend(sorted(pasta.glob("*.yaml")))

    vistos = set()
    unicos = []
    for a in arquivos:
        chave = str(a).lower()
        if chave not in vistos:
            vistos.add(chave)
            unicos.append(a)
    return unicos


@lru_cache(maxsize=8)
def _estrategias_em_cache(arquivos: tuple[Path, ...]) -> tuple[DefinicaoEstrategia, ...]:
    definicoes = []
    for caminho in arquivos:
        try:
            with caminho.open(encoding="utf-8") as f:
                dados = yaml.safe_load(f)
            if not isinstance(dados, dict):
                continue
            definicoes.append(DefinicaoEstrategia.model_validate(dados))
        except (OSError, yaml.YAMLError, ValidationError) as e:
            log.warning("[ESTRATEGIAS] Ignorando %s: %s", caminho.name, e)
    log.info("[ESTRATEGIAS] %d estratégia(s) carregada(s)", len(definicoes))
    return tuple(definicoes)


def carregar_estrategias(config: ConfigExtrator) -> tuple[DefinicaoEstrategia, ...]:
    """Estratégias habilitadas na configuração (lista vazia se desligado)."""
    if not config.estrategias.habilitado:
        return ()
    arquivos = _arquivos_estrategia(config)
    if not arquivos:
        return ()
    return _estrategias_em_cache(tuple(arquivos))


# ══════════════════════════════════════════════════════════════════════
# PESOS E NORMALIZAÇÃO
# ══════════════════════════════════════════════════════════════════════

def chave_campo(nome: str | None) -> str:
    if not nome or not nome.strip():
        return ""
    return re.sub(r"[^A-Z0-9]+", "", remover_acentos(nome).upper())


def mapear_campo(nome: str | None) -> str:
    return MAPA_CAMPOS.get(chave_campo(nome), "")


def score_para_confianca(peso: float, prioridade: float, origem: float,
                         bucket: float, segmento: float) -> float:
    score = (max(0.2, peso) * max(0.7, prioridade) * max(0.6, origem)
             * max(0.6, bucket) * max(0.6, segmento))
    norm = min(1.0, score / 1.6)
    return max(0.45, min(0.92, 0.45 + 0.45 * norm))


def peso_origem(estrategia: DefinicaoEstrategia, nome_arquivo: str) -> tuple[float, float]:
    """
    (peso da origem, peso do bucket). Sem `sources` → (1.0, 1.0).
    Com `sources`, o arquivo precisa casar algum curinga para ganhar 1.0;
    senão fica com (0.7, 0.85).
    """
    if not estrategia.sources:
        return 1.0, 1.0
    melhor, melhor_bucket = 0.7, 0.85
    nome = (nome_arquivo or "").lower()
    for origem in estrategia.sources:
        if any(p and p.strip() and fnmatch.fnmatchcase(nome, p.lower()) for p in origem.name_matches):
            melhor = 1.0
            melhor_bucket = max(melhor_bucket, _PESOS_BUCKET.get(origem.bucket.strip().lower(), 0.8))
    return melhor, melhor_bucket


def aplicar_limpeza(limpezas: list[str], valor: str) -> str:
    v = valor or ""
    if not limpezas:
        return normalizar_espacos(v)
    for limpeza in limpezas:
        if chave_campo(limpeza) == "CLEANMONEY":
            v = normalizar_valor(v) or v
        else:
            v = normalizar_espacos(v)
    return v


def valor_valido(campo: str, valor: str, validacoes: list[str], padroes: PadroesRegex) -> bool:
    if not valor or not valor.strip():
        return False
    v = valor.strip()
    for validacao in validacoes:
        chave = chave_campo(validacao)
        if chave == "VALIDATEMONEY" and not padroes.valor.search(v):
            return False
        if chave == "VALIDATEPARTE" and not _RE_LETRA_PARTE.search(v):
            return False
        if chave == "VALIDATEPERITO" and len(v) < 5:
            return False
        if chave == "VALIDATECOMARCA" and len(v) < 3:
            return False
    if campo == "PROCESSO_JUDICIAL" and not padroes.cnj.search(re.sub(r"\s+", "", v)):
        return False
    if campo == "CPF_PERITO" and len(normalizar_cpf(v)) != 11:
        return False
    return True


def normalizar_valor_campo(campo: str, valor: str, padroes: PadroesRegex) -> str:
    v = normalizar_espacos(valor)
    if campo == "CPF_PERITO":
        return normalizar_cpf(v)
    if campo.startswith("VALOR_") or campo == "ADIANTAMENTO":
        return normalizar_valor(v)
    if campo == "DATA":
        iso = parse_data(v)
        if iso:
            return formatar_data_br(iso)
    if campo.startswith("PROCESSO_"):
        m = padroes.cnj.search(re.sub(r"\s+", "", v))
        if m:
            return m.group(0)
    return v


def bbox_por_tokens(texto: str, palavras: list[Palavra], inicio: int, tamanho: int) -> Optional[BBox]:
    """
    Bbox de um match pela sequência de tokens: procura nas palavras a
    primeira ocorrência dos tokens do trecho casado, na ordem.
    """
    if not palavras or inicio < 0 or tamanho <= 0:
        return None
    fatia = texto[inicio:min(len(texto), inicio + tamanho)]
    alvo = normalizar_espacos(fatia).lower().split(" ")
    if not alvo or not alvo[0]:
        return None
    tokens = [(p, normalizar_token(p.texto).lower()) for p in palavras]
    tokens = [(p, t) for p, t in tokens if t]
    for i in range(len(tokens)):
        if tokens[i][1] != alvo[0]:
            continue
        janela = tokens[i:i + len(alvo)]
        if all(t == a for (_, t), a in zip(janela, alvo)):
            return unir_bbox(p for p, _ in janela)
    return None


# ══════════════════════════════════════════════════════════════════════
# SEGMENTOS
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Segmento:
    pagina: int
    texto: str
    palavras: list[Palavra] = field(default_factory=list)
    bbox: Optional[BBox] = None
    peso: float = 0.85


def _peso_regiao(nome: str) -> float:
    if nome.startswith("first_top") or nome.startswith("last_bottom") or nome == "second_bottom":
        return 1.0
    return 0.9


def montar_segmentos(ctx: ContextoDespacho) -> list[Segmento]:
    """Regiões, depois faixas, depois parágrafos."""
    segmentos = [
        Segmento(r.pagina, r.texto or "", list(r.palavras), r.bbox, _peso_regiao(r.nome))
        for r in ctx.regioes
    ]
    for s in ctx.segmentos:
        peso = 0.9 if s.banda in ("header", "subheader") else 0.85
        segmentos.append(Segmento(s.pagina, s.texto or "", list(s.palavras), s.bbox, peso))
    for p in ctx.paragrafos:
        segmentos.append(Segmento(p.pagina, p.texto or "", list(p.palavras), p.bbox, 0.85))
    return segmentos


# ══════════════════════════════════════════════════════════════════════
# MOTOR
# ══════════════════════════════════════════════════════════════════════

class MotorEstrategias:
    """Aplica as estratégias carregadas a um contexto de despacho."""

    def __init__(self, config: ConfigExtrator):
        self.config = config
        self.estrategias = carregar_estrategias(config)
        self.padroes = compilar_padroes(config.regex)

    def extrair(self, ctx: ContextoDespacho) -> dict[str, Campo]:
        resultado: dict[str, Campo] = {}
        if not self.estrategias:
            return resultado

        segmentos = montar_segmentos(ctx)
        for estrategia in self.estrategias:
            if not estrategia.patterns:
                continue
            prioridade = estrategia.priority if estrategia.priority > 0 else 1.0
            origem, bucket = peso_origem(estrategia, ctx.nome_arquivo)
            pesos = (prioridade, origem, bucket)
            # `fields` vazio libera todos os campos
            permitidos = {c for c in map(mapear_campo, estrategia.fields) if c}

            for padrao in estrategia.patterns:
                campo = mapear_campo(padrao.field)
                if not campo or (permitidos and campo not in permitidos):
                    continue
                tipo = (padrao.type or "regex").strip().lower()
                if tipo == "keyword":
                    self._aplicar_palavra_chave(resultado, campo, padrao, estrategia, pesos, segmentos)
                elif tipo == "regex":
                    self._aplicar_regex(resultado, campo, padrao, estrategia, pesos, segmentos)
        return resultado

    # ── keyword ───────────────────────────────────────────────────────

    def _aplicar_palavra_chave(self, resultado, campo, padrao, estrategia, pesos, segmentos):
        literal = padrao.pattern or ""
        if not literal:
            return
        for seg in segmentos:
            if not seg.texto.strip():
                continue
            idx = seg.texto.lower().find(literal.lower())
            if idx < 0:
                continue
            bruto = padrao.value if padrao.value and padrao.value.strip() else seg.texto[idx:idx + len(literal)]
            valor = normalizar_valor_campo(campo, aplicar_limpeza(estrategia.clean, bruto), self.padroes)
            if not valor_valido(campo, valor, estrategia.validate_, self.padroes):
                continue
            conf = score_para_confianca(padrao.weight, *pesos, seg.peso)
            bbox = bbox_por_tokens(seg.texto, seg.palavras, idx, len(literal)) or seg.bbox
            _guardar(resultado, campo, montar_campo(
                valor, conf, f"strategy_keyword:{padrao.label}",
                trecho_em_torno(seg.texto, idx), seg.pagina, bbox,
            ))

    # ── regex ─────────────────────────────────────────────────────────

    def _aplicar_regex(self, resultado, campo, padrao, estrategia, pesos, segmentos):
        try:
            rx = re.compile(padrao.pattern or "", re.IGNORECASE | re.DOTALL)
        except re.error as e:
            log.warning("[ESTRATEGIAS] Regex inválida em '%s': %s", padrao.label, e)
            return
        segundo = mapear_campo(padrao.compose.second_field) if padrao.compose else ""

        for seg in segmentos:
            if not seg.texto.strip():
                continue
            for m in rx.finditer(seg.texto):
                if segundo and rx.groups >= 2:
                    self._casar_grupo(resultado, campo, m, 1, seg, estrategia, padrao, pesos)
                    self._casar_grupo(resultado, segundo, m, 2, seg, estrategia, padrao, pesos)
                    continue
                self._casar_grupo(resultado, campo, m, 1 if rx.groups >= 1 else 0,
                                  seg, estrategia, padrao, pesos)

    def _casar_grupo(self, resultado, campo, m: re.Match, grupo: int, seg: Segmento,
                     estrategia, padrao, pesos):
        if m.group(grupo) is None:
            return
        bruto = m.group(grupo).strip()
        if not bruto:
            return
        inicio, fim = m.span(grupo)
        if campo == "VALOR_TABELADO_ANEXO_I":
            janela = seg.texto[max(0, inicio - 120):inicio + 120]
            if not _RE_ANEXO_I.search(janela):
                return
        valor = normalizar_valor_campo(campo, aplicar_limpeza(estrategia.clean, bruto), self.padroes)
        if not valor_valido(campo, valor, estrategia.validate_, self.padroes):
            return
        conf = score_para_confianca(padrao.weight, *pesos, seg.peso)
        bbox = bbox_por_tokens(seg.texto, seg.palavras, inicio, fim - inicio) or seg.bbox
        _guardar(resultado, campo, montar_campo(
            valor, conf, f"strategy_regex:{padrao.label}",
            trecho_em_torno(seg.texto, inicio), seg.pagina, bbox,
        ))


def _guardar(resultado: dict[str, Campo], campo: str, candidato: Campo) -> None:
    atual = resultado.get(campo)
    if atual is None or candidato.confianca > atual.confianca:
        resultado[campo] = candidato
