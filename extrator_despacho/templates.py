# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/templates.py — Templates de parágrafo e de região
# ══════════════════════════════════════════════════════════════════════
"""
Dois usos de template:

1. Parágrafo: "Interessado: {{value}}". A âncora (template sem o
   placeholder) é comparada ao parágrafo por similaridade de edição e,
   se parecida o bastante, o valor sai de uma regex.

2. Região: "Processo nº {{PROCESSO_ADMINISTRATIVO}} ... Perito: {{PERITO}}"
   aplicado ao texto de uma região (topo da 1ª página, base da última,
   certidão). Primeiro por alinhamento tolerante dos literais sobre o
   texto colapsado; senão por uma regex gerada que tolera espaços.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from extrator_despacho.assinaturas import parece_assinante
from extrator_despacho.config import ConfigExtrator, PadroesRegex
from extrator_despacho.evidencia import (
    bbox_do_intervalo,
    campo_de_spans,
    montar_campo,
    spans_palavras,
    texto_com_spans,
    texto_colapsado_com_spans,
)
from extrator_despacho.modelos import Campo, Paragrafo, Regiao
from extrator_despacho.similaridade import Similaridade, alinhar_ancora, similaridade_diff, similaridade_edicao
from extrator_despacho.texto import (
    colapsar_letras_espacadas,
    cortar_em_palavras,
    eh_valor_institucional,
    formatar_data_br,
    limpar_nome_parte,
    limpar_nome_pessoa,
    normalizar_cpf,
    normalizar_espacos,
    normalizar_para_busca,
    normalizar_para_diff,
    normalizar_valor,
    parece_nome_parte,
    parse_data,
    trecho_em_torno,
)

RE_PLACEHOLDER = re.compile(r"\{\{\s*([A-Z0-9_]+)\s*\}\}", re.IGNORECASE)

CAMPOS_REGIAO = frozenset({
    "PROCESSO_ADMINISTRATIVO", "PROCESSO_JUDICIAL", "VARA", "COMARCA",
    "PROMOVENTE", "PROMOVIDO", "PERITO", "CPF_PERITO", "ESPECIALIDADE",
    "ESPECIE_DA_PERICIA", "VALOR_ARBITRADO_JZ", "VALOR_ARBITRADO_DE",
    "VALOR_ARBITRADO_CM", "VALOR_TABELADO_ANEXO_I", "ADIANTAMENTO",
    "PERCENTUAL", "PARCELA", "DATA", "ASSINANTE", "NUM_PERITO",
})
CAMPOS_CERTIDAO = frozenset({"VALOR_ARBITRADO_CM", "DATA", "ADIANTAMENTO", "PERCENTUAL", "PARCELA"})

_RE_VALOR_SEM_RS = re.compile(r"\d{1,3}(?:\.\d{3})*,\d{2}")
_RE_DATA_COLADA = re.compile(r"(\d{1,2})de([^\W\d_]+)de(\d{4})", re.IGNORECASE)
_RE_ESPECIALIDADE = re.compile(
    r"(grafot[eé]cnico|m[eé]dic[oa]|cont[aá]bil|engenh[aá]ria|psicol[oó]gic[oa])", re.IGNORECASE
)


# ══════════════════════════════════════════════════════════════════════
# TEMPLATES DE PARÁGRAFO
# ══════════════════════════════════════════════════════════════════════

@dataclass
class CandidatoTemplate:
    valor: str
    paragrafo: Paragrafo
    trecho: str
    score: float
    inicio: int
    tamanho: int


def templates_de_rotulos(rotulos: Iterable[str]) -> list[str]:
    """"processo" → ["processo: {{value}}", "processo - {{value}}"]."""
    saida = []
    for r in rotulos:
        if r and r.strip():
            saida.append(f"{r}: {{{{value}}}}")
            saida.append(f"{r} - {{{{value}}}}")
    return saida


def mesclar_templates(primarios: Iterable[str], extras: Iterable[str]) -> list[str]:
    vistos = set()
    saida = []
    for t in list(primarios or []) + list(extras or []):
        if not t or not t.strip() or t.lower() in vistos:
            continue
        vistos.add(t.lower())
        saida.append(t)
    return saida


def extrair_de_paragrafos(paragrafos: Iterable[Paragrafo], templates: Iterable[str],
                          padrao: re.Pattern,
                          similaridade: Similaridade = similaridade_edicao) -> Optional[CandidatoTemplate]:
    """
    Melhor candidato (maior similaridade âncora × parágrafo, mínimo 0.5)
    cujo parágrafo também casa a regex do valor.
    """
    lista = [t for t in templates or [] if t and t.strip()]
    if not lista:
        return None

    melhor: Optional[CandidatoTemplate] = None
    for p in paragrafos:
        texto = p.texto or ""
        p_norm = normalizar_para_busca(colapsar_letras_espacadas(texto))
        if not p_norm:
            continue
        for t in lista:
            ancora = normalizar_para_busca(t.replace("{{value}}", ""))
            if not ancora:
                continue
            score = similaridade(ancora, p_norm)
            if score < 0.5:
                continue
            m = padrao.search(texto)
            if not m:
                continue
            grupo = 1 if m.re.groups >= 1 and m.group(1) is not None else 0
            candidato = CandidatoTemplate(
                valor=m.group(grupo),
                paragrafo=p,
                trecho=trecho_em_torno(texto, m.start(grupo)),
                score=score,
                inicio=m.start(grupo),
                tamanho=m.end(grupo) - m.start(grupo),
            )
            if melhor is None or candidato.score > melhor.score:
                melhor = candidato
    return melhor


def campo_do_candidato(c: CandidatoTemplate, confianca: float, metodo: str) -> Campo:
    bbox = bbox_do_intervalo(spans_palavras(c.paragrafo.palavras), c.inicio, c.tamanho) or c.paragrafo.bbox
    return montar_campo(c.valor, confianca, metodo, c.trecho, c.paragrafo.pagina, bbox)


# ══════════════════════════════════════════════════════════════════════
# NORMALIZAÇÃO DE VALORES POR CAMPO
# ══════════════════════════════════════════════════════════════════════

def _data_br(texto: str, padroes: PadroesRegex) -> Optional[str]:
    m = padroes.data_extenso.search(texto) or padroes.data_barra.search(texto) or _RE_DATA_COLADA.search(texto)
    if m:
        bruto = m.group(0)
        if " " not in bruto:
            bruto = _RE_DATA_COLADA.sub(r"\1 de \2 de \3", bruto)
        iso = parse_data(bruto)
        if iso:
            return formatar_data_br(iso)
    iso = parse_data(texto)
    return formatar_data_br(iso) if iso else None


def validar_valor_template(campo: str, bruto: str, padroes: PadroesRegex) -> Optional[str]:
    """Valor estrito para o alinhamento por âncoras: None quando não é do tipo do campo."""
    if not bruto or not bruto.strip():
        return None
    valor = normalizar_espacos(bruto)

    if campo == "PROCESSO_ADMINISTRATIVO":
        m = padroes.sei.search(valor) or padroes.adme.search(valor)
        return m.group(0).strip() if m else None
    if campo == "PROCESSO_JUDICIAL":
        m = padroes.cnj.search(valor)
        return m.group(0).strip() if m else None
    if campo == "CPF_PERITO":
        m = padroes.cpf.search(valor)
        return normalizar_cpf(m.group(0)) if m else None
    if campo.startswith("VALOR_") or campo == "ADIANTAMENTO":
        m = padroes.valor.search(valor)
        if not m:
            return None
        return normalizar_valor(m.group(0)) or None
    if campo == "DATA":
        return _data_br(valor, padroes)
    if campo == "NUM_PERITO":
        digitos = "".join(c for c in valor if c.isdigit())
        return digitos if len(digitos) >= 6 else None
    if campo == "ASSINANTE":
        limpo = limpar_nome_pessoa(valor)
        if not parece_assinante(limpo):
            return None
        norm = normalizar_para_busca(limpo)
        return None if "documento" in norm or "assin" in norm else limpo
    if campo in ("PROMOVENTE", "PROMOVIDO"):
        limpo = limpar_nome_parte(valor)
        if not parece_nome_parte(limpo) or eh_valor_institucional(limpo):
            return None
        return limpo
    if campo in ("PERITO", "ESPECIALIDADE", "VARA", "COMARCA", "ESPECIE_DA_PERICIA", "PERCENTUAL", "PARCELA"):
        return valor if len(valor) <= 140 else None
    return None


def normalizar_valor_template(campo: str, bruto: str, padroes: PadroesRegex) -> str:
    """Normalização tolerante para a regex gerada: devolve o texto limpo do melhor jeito possível."""
    v = (bruto or "").strip()
    if not v:
        return v
    if campo == "ASSINANTE":
        limpo = limpar_nome_pessoa(v)
        return cortar_em_palavras(limpo, ("Diretor", "Diretora", "Diretor(a)", ",")) if parece_assinante(limpo) else "-"
    if campo == "CPF_PERITO":
        m = padroes.cpf.search(v)
        if m:
            return normalizar_cpf(m.group(0))
        return normalizar_cpf(v)[:11]
    if campo == "DATA":
        return _data_br(v, padroes) or v
    if campo.startswith("VALOR_") or campo == "ADIANTAMENTO":
        m = padroes.valor.search(v) or _RE_VALOR_SEM_RS.search(v)
        return normalizar_valor(m.group(0) if m else v)
    if campo in ("PROMOVENTE", "PROMOVIDO", "PERITO"):
        return cortar_em_palavras(v, ("CPF", "CNPJ", "EM FACE", "PERANTE"))
    if campo == "ESPECIALIDADE":
        m = _RE_ESPECIALIDADE.search(v)
        return m.group(0) if m else v
    if campo.startswith("PROCESSO_"):
        m = padroes.cnj.search(v) or padroes.sei.search(v) or padroes.adme.search(v)
        return m.group(0) if m else v
    return v


# ══════════════════════════════════════════════════════════════════════
# TEMPLATES DE REGIÃO
# ══════════════════════════════════════════════════════════════════════

def _padrao_literal_tolerante(literal: str) -> str:
    """Cada caractere vira escape + \\s*; qualquer espaço vira \\s*."""
    partes = []
    anterior_espaco = False
    for ch in literal:
        if ch.isspace():
            if not anterior_espaco:
                partes.append(r"\s*")
            anterior_espaco = True
            continue
        partes.append(re.escape(ch) + r"\s*")
        anterior_espaco = False
    padrao = "".join(partes)
    if padrao.endswith(r"\s*"):
        padrao = padrao[:-3]
    return padrao


def _segmentos_template(template: str) -> list[tuple[str, Optional[str]]]:
    """[(literal, campo seguinte)], terminando com (cauda, None)."""
    segmentos = []
    ultimo = 0
    for m in RE_PLACEHOLDER.finditer(template):
        segmentos.append((template[ultimo:m.start()], m.group(1).strip().upper()))
        ultimo = m.end()
    segmentos.append((template[ultimo:], None))
    return segmentos


def aplicar_template_alinhado(regiao: Regiao, template: str, padroes: PadroesRegex) -> dict[str, Campo]:
    """
    Localiza cada literal em sequência (cursor sempre avança) sobre o texto
    colapsado da região. Todos os literais precisam ser encontrados; o valor
    de cada campo são as palavras entre os literais vizinhos.
    """
    saida: dict[str, Campo] = {}
    colapsado, spans = texto_colapsado_com_spans(regiao.palavras)
    if not colapsado.strip():
        return saida
    texto_norm = normalizar_para_diff(colapsado)
    if len(texto_norm) != len(colapsado):
        texto_norm = colapsado.lower()

    segmentos = _segmentos_template(template)
    posicoes: list[Optional[tuple[int, int]]] = []
    cursor = 0
    encontrados = 0
    total = 0
    for literal, _campo in segmentos:
        if not literal.strip():
            posicoes.append(None)
            continue
        total += 1
        lit_colapsado = colapsar_letras_espacadas(literal)
        lit_norm = normalizar_para_diff(lit_colapsado)
        if len(lit_norm) != len(lit_colapsado):
            lit_norm = lit_colapsado.lower()
        if not lit_norm:
            posicoes.append(None)
            continue
        achado = alinhar_ancora(texto_norm, lit_norm, cursor)
        if achado is None:
            return saida
        encontrados += 1
        posicoes.append(achado)
        cursor = min(len(texto_norm), achado[1])

    if encontrados == 0:
        return saida

    confianca = min(0.95, 0.65 + 0.25 * encontrados / max(1, total))
    for i, (_literal, campo) in enumerate(segmentos):
        if not campo:
            continue
        anterior = posicoes[i]
        proximo = posicoes[i + 1] if i + 1 < len(posicoes) else None
        inicio = anterior[1] if anterior else 0
        fim = proximo[0] if proximo else len(colapsado)
        if fim <= inicio:
            continue
        palavras = [p for p, s, e in spans if s < fim and e > inicio]
        bruto = (normalizar_espacos(" ".join(p.texto for p in palavras))
                 if palavras else colapsado[inicio:fim].strip())
        valor = validar_valor_template(campo, bruto, padroes)
        if not valor:
            continue
        saida[campo] = campo_de_spans(
            valor, confianca, f"template_diff_region:{regiao.nome}",
            colapsado, inicio, fim - inicio, spans, regiao.pagina,
        )
    return saida


def aplicar_template_regex(regiao: Regiao, template: str, padroes: PadroesRegex,
                           similaridade: Similaridade = similaridade_diff) -> dict[str, Campo]:
    """Regex gerada a partir do template; confiança pela similaridade template × região."""
    saida: dict[str, Campo] = {}
    placeholders = list(RE_PLACEHOLDER.finditer(template))
    if not placeholders:
        return saida

    partes = []
    campos = []
    ultimo = 0
    for i, m in enumerate(placeholders):
        partes.append(_padrao_literal_tolerante(template[ultimo:m.start()]))
        ultimo_placeholder = i == len(placeholders) - 1
        partes.append("(.+)" if ultimo_placeholder and not template[m.end():].strip() else "(.+?)")
        campos.append(m.group(1).strip().upper())
        ultimo = m.end()
    partes.append(_padrao_literal_tolerante(template[ultimo:]))

    padrao = re.compile("".join(partes), re.IGNORECASE | re.DOTALL)
    m = padrao.search(regiao.texto)
    if not m:
        return saida
    # bbox pelos offsets no texto das palavras
    texto_spans, spans = texto_com_spans(regiao.palavras)
    m_spans = padrao.search(texto_spans)

    nucleo = RE_PLACEHOLDER.sub("", template)
    score = similaridade(normalizar_para_busca(nucleo), normalizar_para_busca(regiao.texto))
    confianca = max(0.65, min(0.92, 0.65 + 0.35 * score))

    for i, campo in enumerate(campos):
        bruto = (m.group(i + 1) or "").strip()
        if not bruto:
            continue
        valor = normalizar_valor_template(campo, bruto, padroes)
        if not valor or valor == "-":
            continue
        inicio = m.start(i + 1)
        bbox = None
        if m_spans is not None:
            ini_spans = m_spans.start(i + 1)
            bbox = bbox_do_intervalo(spans, ini_spans, m_spans.end(i + 1) - ini_spans)
        bbox = bbox or regiao.bbox
        saida[campo] = montar_campo(
            valor, confianca, f"template_region:{regiao.nome}",
            trecho_em_torno(regiao.texto, inicio), regiao.pagina, bbox,
        )
    return saida


def aplicar_template(regiao: Regiao, template: str, padroes: PadroesRegex) -> dict[str, Campo]:
    if not template or not template.strip() or not regiao.texto.strip():
        return {}
    return aplicar_template_alinhado(regiao, template, padroes) or aplicar_template_regex(regiao, template, padroes)


def _templates_da_regiao(nome: str, config: ConfigExtrator) -> tuple[str, ...]:
    rt = config.regioes_template
    if nome == "first_top":
        return rt.primeira_pagina_topo.templates
    if nome.startswith("last_bottom") or nome == "second_bottom":
        return rt.ultima_pagina_base.templates
    if nome == "certidao_full":
        return rt.certidao_completa.templates
    if nome == "certidao_value_date":
        return rt.certidao_valor_data.templates
    return ()


def extrair_de_regioes(regioes: Iterable[Regiao], config: ConfigExtrator,
                       padroes: PadroesRegex) -> dict[str, Campo]:
    """Semente da passada de templates: maior confiança por campo."""
    resultado: dict[str, Campo] = {}
    for regiao in regioes:
        permitidos = CAMPOS_CERTIDAO if regiao.nome.startswith("certidao_") else CAMPOS_REGIAO
        for template in _templates_da_regiao(regiao.nome, config):
            for campo, info in aplicar_template(regiao, template, padroes).items():
                if campo not in permitidos:
                    continue
                atual = resultado.get(campo)
                if atual is None or info.confianca > atual.confianca:
                    resultado[campo] = info
    return resultado
