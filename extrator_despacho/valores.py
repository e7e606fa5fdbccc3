# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/valores.py — Passadas dos campos monetários
# ══════════════════════════════════════════════════════════════════════
"""
Campos monetários do despacho:

    VALOR_ARBITRADO_JZ      valor fixado pelo juízo (1ª página)
    VALOR_ARBITRADO_DE      valor autorizado pela Diretoria Especial (2ª página)
    VALOR_ARBITRADO_CM      valor submetido ao Conselho da Magistratura
    VALOR_TABELADO_ANEXO_I  valor da tabela do Anexo I
    ADIANTAMENTO / PERCENTUAL / PARCELA

O tipo do despacho decide quais passadas rodam:

    autorizacao        reserva orçamentária / autorização da despesa → JZ + DE
    encaminhamento_cm  remessa ao Conselho → JZ + CM (DE fica ausente)
    indefinido         heurísticas por página
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from extrator_despacho.config import ConfigExtrator, PadroesRegex, compilar_padroes
from extrator_despacho.evidencia import (
    bbox_do_intervalo,
    campo_do_match,
    garantir,
    montar_campo,
    texto_colapsado_com_spans,
    trecho_do_match,
)
from extrator_despacho.modelos import Campo, ContextoDespacho, Paragrafo, SegmentoBanda, nao_encontrado
from extrator_despacho.regioes import eh_regiao_base
from extrator_despacho.texto import (
    colapsar_letras_espacadas,
    contem_algum,
    normalizar_para_busca,
    normalizar_valor,
    trecho_em_torno,
)

log = logging.getLogger("extrator_despacho")

TIPO_AUTORIZACAO = "autorizacao"
TIPO_ENCAMINHAMENTO_CM = "encaminhamento_cm"
TIPO_INDEFINIDO = "indefinido"

PADRAO_VALOR_DE = (
    r"proceder\s*(?:à|a)?\s*reserva\s+orçament[aá]ria[^\d]{0,120}?"
    r"(R\$\s*\d{1,3}(?:\.\d{3})*,\d{2})"
)

_DICAS_REMESSA = ("encaminh", "submet", "remet", "remetam", "remessa")
_DICAS_JZ = ("arbitr", "honor", "perit", "peric", "fixa", "valor")
_EXCLUI_JZ = ("reserva", "georc", "empenh", "conselho", "diretoria")
_DICAS_DE = ("reserva", "georc", "orcament", "autoriz", "encaminh", "pagamento", "empenh")
_EXCLUI_DE = ("conselho", "certidao")
_DICAS_NUMERICO = ("valor", "empenho", "arbitrad", "orcament", "georc")

_RE_NUMERO_VALOR = re.compile(r"\b\d{1,3}(?:\.\d{3})*,\d{2}\b")
_RE_PERCENTUAL = re.compile(r"\b\d{1,2}\s?%")
_RE_PARCELA = re.compile(r"(\d+ª\s*parcela|primeira\s*parcela|segunda\s*parcela|terceira\s*parcela)",
                         re.IGNORECASE)


@dataclass
class CamposValor:
    jz: Campo = field(default_factory=nao_encontrado)
    de: Campo = field(default_factory=nao_encontrado)
    cm: Campo = field(default_factory=nao_encontrado)
    tabela: Campo = field(default_factory=nao_encontrado)


# ══════════════════════════════════════════════════════════════════════
# TIPO DO DESPACHO
# ══════════════════════════════════════════════════════════════════════

def detectar_tipo_despacho(ctx: ContextoDespacho, config: ConfigExtrator) -> str:
    tipo = config.tipo_despacho
    base = " ".join(r.texto for r in ctx.regioes if r.nome in ("second_bottom", "last_bottom"))
    base_norm = normalizar_para_busca(base)
    if contem_algum(base_norm, tipo.dicas_georc) or contem_algum(base_norm, tipo.dicas_autorizacao):
        return TIPO_AUTORIZACAO
    if contem_algum(base_norm, tipo.dicas_conselho) and contem_algum(base_norm, _DICAS_REMESSA):
        return TIPO_ENCAMINHAMENTO_CM

    desde = max(ctx.pagina_inicio, ctx.pagina_fim - 1)
    cauda = normalizar_para_busca(" ".join(p.texto for p in ctx.paragrafos if p.pagina >= desde))
    if contem_algum(cauda, tipo.dicas_georc) or contem_algum(cauda, tipo.dicas_autorizacao):
        return TIPO_AUTORIZACAO
    return TIPO_INDEFINIDO


# ══════════════════════════════════════════════════════════════════════
# BUSCAS
# ══════════════════════════════════════════════════════════════════════

def _maior_corpo(ctx: ContextoDespacho, pagina: int) -> Optional[SegmentoBanda]:
    corpos = [s for s in ctx.segmentos if s.pagina == pagina and s.banda == "body"]
    if not corpos:
        return None
    return max(corpos, key=lambda s: (len(s.palavras), len(s.texto or "")))


def valor_na_faixa(faixa: Optional[SegmentoBanda], incluir: Iterable[str], excluir: Iterable[str],
                   metodo: str, score_base: float, padroes: PadroesRegex) -> Campo:
    """
    Valor com melhor pontuação no texto colapsado da faixa: +0.15 se a
    janela de ±100 caracteres tem dica de inclusão, −0.15 se tem dica de
    exclusão. Confiança limitada a 0.85.
    """
    if faixa is None or not faixa.palavras:
        return nao_encontrado()
    colapsado, spans = texto_colapsado_com_spans(faixa.palavras)
    if not colapsado.strip():
        return nao_encontrado()

    melhor, melhor_score = nao_encontrado(), 0.0
    for m in padroes.valor.finditer(colapsado):
        ini = max(0, m.start() - 100)
        janela = normalizar_para_busca(colapsado[ini:ini + 200])
        score = score_base
        if contem_algum(janela, incluir):
            score += 0.15
        if contem_algum(janela, excluir):
            score -= 0.15
        if score <= 0:
            continue
        valor = normalizar_valor(m.group(0))
        if not valor:
            continue
        if score > melhor_score:
            melhor_score = score
            bbox = bbox_do_intervalo(spans, m.start(), m.end() - m.start()) or faixa.bbox
            melhor = montar_campo(valor, min(0.85, score), metodo,
                                  trecho_do_match(colapsado, m), faixa.pagina, bbox)
    return melhor


def melhor_valor(paragrafos: Iterable[Paragrafo], padroes: PadroesRegex, config: ConfigExtrator,
                 arbitrado: bool = False, georc: bool = False, conselho: bool = False) -> Campo:
    """Valor monetário nos parágrafos: 0.6, +0.2 quando o parágrafo tem a dica preferida."""
    tipo = config.tipo_despacho
    melhor, melhor_score = nao_encontrado(), 0.0
    for p in paragrafos:
        texto = p.texto or ""
        norm = normalizar_para_busca(texto)
        alvo_texto, spans = texto, []
        if p.palavras:
            colapsado, spans_colapsados = texto_colapsado_com_spans(p.palavras)
            if colapsado.strip():
                alvo_texto, spans = colapsado, spans_colapsados

        for m in padroes.valor.finditer(alvo_texto):
            score = 0.6
            if arbitrado and any(k in norm for k in ("arbitrado", "arbitramento", "honorario")):
                score += 0.2
            if georc and contem_algum(norm, tipo.dicas_georc):
                score += 0.2
            if conselho and contem_algum(norm, tipo.dicas_conselho):
                score += 0.2
            if score > melhor_score:
                melhor_score = score
                bbox = bbox_do_intervalo(spans, m.start(), m.end() - m.start()) if spans else p.bbox
                melhor = montar_campo(normalizar_valor(m.group(0)), score, "heuristic",
                                      trecho_do_match(alvo_texto, m), p.pagina, bbox)
    return melhor


def _padroes_de(config: ConfigExtrator) -> list[re.Pattern]:
    compilados = []
    for bruto in config.tipo_despacho.padroes_valor_de or (PADRAO_VALOR_DE,):
        try:
            compilados.append(re.compile(bruto, re.IGNORECASE))
        except re.error as e:
            log.warning("[VALORES] Padrão de valor DE inválido (%s): %s", bruto, e)
    return compilados


def _valor_de_segunda_pagina(faixa: SegmentoBanda, config: ConfigExtrator, padroes: PadroesRegex) -> Campo:
    texto = faixa.texto or ""
    for rx in _padroes_de(config):
        m = rx.search(texto)
        if not m:
            continue
        grupo = 1 if rx.groups >= 1 else 0
        valor = normalizar_valor(m.group(grupo))
        if not valor:
            mm = padroes.valor.search(m.group(0))
            valor = normalizar_valor(mm.group(0)) if mm else ""
        if valor:
            return campo_do_match(valor, 0.85, "regex_band:de_georc", faixa, m, grupo)

    if not faixa.palavras:
        return nao_encontrado()
    colapsado, spans = texto_colapsado_com_spans(faixa.palavras)
    achados = list(padroes.valor.finditer(colapsado))
    if achados:
        m = achados[-1]
        valor = normalizar_valor(m.group(0))
        if valor:
            bbox = bbox_do_intervalo(spans, m.start(), m.end() - m.start()) or faixa.bbox
            return montar_campo(valor, 0.65, "heuristic:second_bottom_last_money",
                                trecho_do_match(colapsado, m), faixa.pagina, bbox)

    for m in reversed(list(_RE_NUMERO_VALOR.finditer(colapsado))):
        ini = max(0, m.start() - 80)
        janela = normalizar_para_busca(colapsado[ini:ini + 160])
        if not any(k in janela for k in _DICAS_NUMERICO):
            continue
        valor = normalizar_valor(m.group(0))
        if not valor:
            continue
        bbox = bbox_do_intervalo(spans, m.start(), m.end() - m.start()) or faixa.bbox
        return montar_campo(valor, 0.6, "heuristic:second_bottom_numeric",
                            trecho_em_torno(colapsado, m.start()), faixa.pagina, bbox)
    return nao_encontrado()


def _valor_de_texto_da_faixa(ctx: ContextoDespacho, pagina: int, padroes: PadroesRegex) -> Campo:
    bandas = [b for b in ctx.bandas if b.pagina == pagina and b.banda == "body" and (b.texto or "").strip()]
    if not bandas:
        return nao_encontrado()
    banda = max(bandas, key=lambda b: len(b.texto))
    colapsado = colapsar_letras_espacadas(banda.texto)
    m = padroes.valor.search(colapsado)
    if not m:
        return nao_encontrado()
    valor = normalizar_valor(m.group(0))
    if not valor:
        return nao_encontrado()
    return montar_campo(valor, 0.55, "heuristic:second_band_text",
                        trecho_do_match(colapsado, m), banda.pagina, banda.bbox)


# ══════════════════════════════════════════════════════════════════════
# PASSADAS
# ══════════════════════════════════════════════════════════════════════

def extrair_valores(ctx: ContextoDespacho, config: ConfigExtrator) -> CamposValor:
    padroes = compilar_padroes(config.regex)
    r = CamposValor()

    tipo = detectar_tipo_despacho(ctx, config)
    primeira, segunda, ultima = ctx.pagina_inicio, ctx.pagina_inicio + 1, ctx.pagina_fim
    par_primeira = [p for p in ctx.paragrafos if p.pagina == primeira]
    par_segunda = [p for p in ctx.paragrafos if p.pagina == segunda]
    par_ultima = [p for p in ctx.paragrafos if p.pagina == ultima]
    corpo_primeira = _maior_corpo(ctx, primeira)
    corpo_segunda = _maior_corpo(ctx, segunda)
    corpo_ultima = _maior_corpo(ctx, ultima)

    if tipo != TIPO_ENCAMINHAMENTO_CM:
        if corpo_segunda is not None:
            r.de = _valor_de_segunda_pagina(corpo_segunda, config, padroes)
        if not r.de.encontrado:
            r.de = _valor_de_texto_da_faixa(ctx, segunda, padroes)

    if tipo == TIPO_AUTORIZACAO:
        r.jz = melhor_valor(par_primeira, padroes, config, arbitrado=True)
        if not r.de.encontrado:
            r.de = melhor_valor(par_segunda, padroes, config, georc=True)
    elif tipo == TIPO_ENCAMINHAMENTO_CM:
        r.jz = melhor_valor(par_primeira, padroes, config, arbitrado=True)
        r.cm = melhor_valor(par_ultima, padroes, config, conselho=True)
    else:
        _valores_por_pagina(r, par_primeira, par_segunda, par_ultima, padroes, config)

    if not r.jz.encontrado and corpo_primeira is not None:
        achado = valor_na_faixa(corpo_primeira, _DICAS_JZ, _EXCLUI_JZ, "heuristic:band_first", 0.62, padroes)
        if achado.encontrado:
            r.jz = achado
    if not r.de.encontrado and corpo_ultima is not None:
        achado = valor_na_faixa(corpo_ultima, _DICAS_DE, _EXCLUI_DE, "heuristic:band_last", 0.6, padroes)
        if achado.encontrado:
            r.de = achado

    log.debug("[VALORES] tipo=%s jz=%s de=%s cm=%s", tipo, r.jz.valor, r.de.valor, r.cm.valor)
    return CamposValor(garantir(r.jz), garantir(r.de), garantir(r.cm), garantir(r.tabela))


def _valores_por_pagina(r: CamposValor, par_primeira, par_segunda, par_ultima,
                        padroes: PadroesRegex, config: ConfigExtrator) -> None:
    """Despacho sem tipo definido: o último valor relevante de cada página vence."""
    for p in par_primeira:
        norm = normalizar_para_busca(p.texto)
        arbitrado = any(k in norm for k in ("arbitrado", "arbitramento", "honorario"))
        for m in padroes.valor.finditer(p.texto or ""):
            if arbitrado or not r.jz.encontrado:
                r.jz = campo_do_match(normalizar_valor(m.group(0)), 0.7, "heuristic", p, m)

    for p in par_segunda:
        norm = normalizar_para_busca(p.texto)
        for m in padroes.valor.finditer(p.texto or ""):
            if any(k in norm for k in ("diretoria", "assinad", "georc")) or not r.de.encontrado:
                r.de = campo_do_match(normalizar_valor(m.group(0)), 0.7, "heuristic", p, m)
            if "anexo i" in norm or "tabelad" in norm:
                r.tabela = campo_do_match(normalizar_valor(m.group(0)), 0.65, "regex", p, m)

    for p in par_ultima:
        if not contem_algum(normalizar_para_busca(p.texto), config.tipo_despacho.dicas_conselho):
            continue
        for m in padroes.valor.finditer(p.texto or ""):
            r.cm = campo_do_match(normalizar_valor(m.group(0)), 0.8, "regex", p, m)


def extrair_extras(ctx: ContextoDespacho, config: ConfigExtrator) -> tuple[Campo, Campo, Campo]:
    """(ADIANTAMENTO, PERCENTUAL, PARCELA): primeira ocorrência em qualquer parágrafo."""
    padroes = compilar_padroes(config.regex)
    adiantamento = percentual = parcela = nao_encontrado()
    for p in ctx.paragrafos:
        texto = p.texto or ""
        norm = normalizar_para_busca(texto)
        if not adiantamento.encontrado and "adiantamento" in norm:
            m = padroes.valor.search(texto)
            if m:
                adiantamento = campo_do_match(normalizar_valor(m.group(0)), 0.65, "regex", p, m)
        if not percentual.encontrado:
            m = _RE_PERCENTUAL.search(texto)
            if m:
                percentual = campo_do_match(m.group(0).replace(" ", ""), 0.6, "regex", p, m)
        if not parcela.encontrado and "parcela" in norm:
            m = _RE_PARCELA.search(texto)
            if m:
                parcela = campo_do_match(m.group(0), 0.6, "regex", p, m)
    return adiantamento, percentual, parcela
