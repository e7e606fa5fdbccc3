# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/assinaturas.py — Assinaturas digitais e textuais
# ══════════════════════════════════════════════════════════════════════
"""
Duas fontes de assinatura:

1. Digital: campos de assinatura do PDF, lidos pelo leitor_pdf. Um
   registro por widget, com o nome do signatário (ou o CN do certificado).
2. Textual: varredura do texto das faixas por "Documento assinado
   eletronicamente por ..." ou "<nome> – Diretor ...".

Aqui também ficam as regras de reconhecimento de nomes de assinantes
usadas pelo campo ASSINANTE.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from extrator_despacho.modelos import Assinatura, AssinaturaDigital, Banda
from extrator_despacho.texto import (
    colapsar_letras_espacadas,
    contem_algum,
    cortar_em_palavras,
    limpar_nome_pessoa,
    normalizar_espacos,
    normalizar_para_busca,
    parse_data,
    remover_acentos,
    trecho_em_torno,
)


# ══════════════════════════════════════════════════════════════════════
# PADRÕES
# ══════════════════════════════════════════════════════════════════════

_LETRA = r"[^\W\d_]"
_CHAR_NOME = r"(?:[^\W\d_]|['\-.])"
_PARTE_NOME = _LETRA + _CHAR_NOME + "*"

# "Documento assinado eletronicamente por Fulano de Tal, Diretor..."
RE_ASSINADO = re.compile(
    r"(?:documento\s*)?assinad[oa]\s*eletronicamente\s*por\s*:?\s*"
    r"(?P<name>" + _PARTE_NOME + r"(?:[ \t]+" + _PARTE_NOME + r"){0,8}?)"
    r"(?=\s*(?:-|–|—|,|;|\.|\bem\b|\d{1,2}/\d{1,2}/\d{2,4})|$)",
    re.IGNORECASE | re.MULTILINE,
)

# Mesmo anúncio com todos os espaços removidos
RE_ASSINADO_COLAPSADO = re.compile(
    r"(?:documento)?assinad[oa]eletronicamentepor:?(?P<name>" + _LETRA + r"{5,})",
    re.IGNORECASE,
)

# Rodapé do PJe: "... por: FULANO DE TAL - 01/02/2024"
RE_PJE = re.compile(
    r"por\s*:?\s*(?P<name>" + _LETRA + _CHAR_NOME + r"{2,}(?:[ \t]+" + _LETRA + _CHAR_NOME + r"{2,}){0,8}?)"
    r"(?=\s*(?:-|–|—|\d{1,2}/\d{1,2}/\d{2,4})|$)",
    re.IGNORECASE | re.MULTILINE,
)

# "Fulano de Tal – Diretor(a) Especial"
RE_LINHA_DIRETOR = re.compile(
    r"(?P<name>" + _PARTE_NOME + r"(?:\s+" + _PARTE_NOME + r"){1,6})\s*(?:[–-]|,)\s*"
    r"Diretor(?:a|\(a\))?\s+Especial(?:\s+em\s+exerc[ií]cio)?",
    re.IGNORECASE,
)

_RE_ASSINADO_TEXTO = re.compile(r"documento assinado eletronicamente por\s+([^,\n]+)", re.IGNORECASE)
_RE_DIRETOR_TEXTO = re.compile(
    r"(" + _LETRA + r"(?:" + _LETRA + r"|['.\s\-]){3,})\s*[-‐‑‒–—−]\s*diretor", re.IGNORECASE
)
_RE_DATA_EXTENSO = re.compile(r"\b(\d{1,2}\s+de\s+" + _LETRA + r"+\s+de\s+\d{4})\b", re.IGNORECASE)
_RE_DATA_BARRA = re.compile(r"\b(\d{1,2}/\d{1,2}/\d{2,4})\b")
_RE_CN = re.compile(r"\bCN\s*=\s*([^,;/]+)", re.IGNORECASE)
_RE_NAO_LETRA = re.compile(r"[^\w\s'\-]|[\d_]")

_CARGOS = (
    "Diretor", "Diretora", "Diretor(a)", "Diretor Especial",
    "Juiz", "Juiza", "Juíza", "Juiz(a)",
    "Desembargador", "Desembargadora", "Presidente",
)


# ══════════════════════════════════════════════════════════════════════
# NOMES DE ASSINANTES
# ══════════════════════════════════════════════════════════════════════

def normalizar_nome_certificado(valor: str | None) -> str:
    """Nome do signatário digital: CN do certificado, só letras e espaços."""
    if not valor or not valor.strip():
        return ""
    m = _RE_CN.search(valor)
    v = m.group(1) if m else valor
    v = colapsar_letras_espacadas(v)
    return normalizar_espacos(_RE_NAO_LETRA.sub(" ", v))


def normalizar_nome_assinante(bruto: str | None) -> str:
    """Limpa o nome e corta o cargo que às vezes vem colado ("... Diretor Especial")."""
    limpo = limpar_nome_pessoa(bruto)
    if not limpo:
        return ""
    return cortar_em_palavras(limpo, _CARGOS)


def chave_assinante(valor: str | None) -> str:
    """Só letras, sem acento, minúsculas."""
    if not valor:
        return ""
    return re.sub(r"[^A-Za-z]", "", remover_acentos(valor)).lower()


def resolver_nome_assinante(bruto: str | None, assinantes_rodape: Iterable[str] = ()) -> str:
    """
    Nome completo do assinante. Se o nome casado (às vezes truncado) bate
    com algum assinante conhecido do rodapé, usa a forma do rodapé.
    """
    if not bruto or not bruto.strip():
        return ""
    limpo = normalizar_nome_assinante(bruto)
    chave = chave_assinante(bruto)
    if not chave:
        return limpo
    for conhecido in assinantes_rodape:
        k = chave_assinante(conhecido)
        if k and (k == chave or chave in k or k in chave):
            return normalizar_nome_assinante(conhecido)
    return limpo


def escolher_assinante(assinantes: list[str], dicas: Iterable[str]) -> Optional[str]:
    """Primeiro assinante que contém alguma dica; senão o primeiro da lista."""
    if not assinantes:
        return None
    dicas = [d for d in dicas if d and d.strip()]
    for nome in assinantes:
        if dicas and contem_algum(normalizar_para_busca(nome), dicas):
            return nome
    return assinantes[0]


def tem_ancora_assinatura(texto: str | None) -> bool:
    """Anúncio de assinatura eletrônica/digital, inclusive o rodapé do PJe."""
    if not texto or not texto.strip():
        return False
    norm = normalizar_para_busca(texto).replace(" ", "")
    if "assinadoeletronicamente" in norm or "assinadodigitalmente" in norm:
        return True
    return tem_ancora_pje(texto)


def tem_ancora_pje(texto: str | None) -> bool:
    """Rodapé do PJe ("Número do documento ... por: FULANO")."""
    if not texto or not texto.strip():
        return False
    norm = normalizar_para_busca(texto).replace(" ", "")
    if "numerododocumento" in norm and "por" in norm:
        return True
    return "documento" in norm and "por" in norm and "eletron" in norm


def parece_assinante(valor: str | None) -> bool:
    if not valor or not valor.strip():
        return False
    v = normalizar_espacos(valor)
    if len(v) < 5:
        return False
    minusculo = v.lower()
    if "pg." in minusculo or "sei" in minusculo:
        return False
    if any(c.isdigit() for c in v):
        return False
    if len(v.split()) < 2:
        # PDFs que colam as palavras: aceita um token longo
        return len(v) >= 10
    return True


# ══════════════════════════════════════════════════════════════════════
# EXTRAÇÃO
# ══════════════════════════════════════════════════════════════════════

def extrair_assinaturas_digitais(assinaturas: Iterable[AssinaturaDigital]) -> list[Assinatura]:
    """Um registro por widget; sem widget → um registro com página 0."""
    saida: list[Assinatura] = []
    for a in assinaturas or []:
        nome = normalizar_nome_certificado(a.nome_assinante) or normalizar_nome_certificado(a.assunto_certificado)
        base = dict(
            metodo="digital",
            campo=a.campo,
            assinante=nome,
            data=a.data,
            motivo=a.motivo or "",
            local=a.local or "",
        )
        if not a.widgets:
            saida.append(Assinatura(**base))
            continue
        for w in a.widgets:
            saida.append(Assinatura(**base, pagina=w.pagina, bbox=w.bbox))
    return saida


def _data_do_texto(texto: str) -> Optional[str]:
    m = _RE_DATA_EXTENSO.search(texto)
    if m:
        iso = parse_data(m.group(1))
        if iso:
            return iso
    m = _RE_DATA_BARRA.search(texto)
    if m:
        return parse_data(m.group(1))
    return None


def extrair_assinaturas_texto(bandas: Iterable[Banda]) -> list[Assinatura]:
    """Varre o texto de cada faixa por anúncios de assinatura."""
    saida: list[Assinatura] = []
    for banda in bandas or []:
        texto = banda.texto or ""
        if not texto.strip():
            continue
        m = _RE_ASSINADO_TEXTO.search(texto) or _RE_DIRETOR_TEXTO.search(texto)
        if not m:
            continue
        saida.append(Assinatura(
            metodo="text_anchor",
            assinante=normalizar_nome_certificado(m.group(1).strip()),
            data=_data_do_texto(texto),
            pagina=banda.pagina,
            bbox=banda.bbox,
            trecho=trecho_em_torno(texto, m.start()),
        ))
    return saida


def mesclar_assinaturas(*grupos: Iterable[Assinatura]) -> list[Assinatura]:
    """Concatena e remove duplicatas por método|campo|página|assinante."""
    vistas = set()
    saida = []
    for grupo in grupos:
        for a in grupo:
            chave = f"{a.metodo}|{a.campo}|{a.pagina}|{a.assinante}"
            if chave in vistas:
                continue
            vistas.add(chave)
            saida.append(a)
    return saida
