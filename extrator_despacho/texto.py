# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/texto.py — Primitivas de normalização de texto
# ══════════════════════════════════════════════════════════════════════
"""
Funções puras de normalização usadas por todas as etapas:

- espaços, acentos e caixa (para hash, busca e diff)
- tokens com letras espaçadas ("D E S P A C H O" → "DESPACHO")
- valores monetários, datas e CPF no formato brasileiro
- união de bounding boxes e hash de conteúdo
"""

from __future__ import annotations

import hashlib
import math
import re
import unicodedata
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from extrator_despacho.modelos import BBox, Palavra


# ══════════════════════════════════════════════════════════════════════
# CONSTANTES
# ══════════════════════════════════════════════════════════════════════

# Mapa de meses por extenso → número (sem acento para casar após normalização)
MESES_EXTENSO = {
    "janeiro": 1, "fevereiro": 2, "marco": 3, "abril": 4,
    "maio": 5, "junho": 6, "julho": 7, "agosto": 8,
    "setembro": 9, "outubro": 10, "novembro": 11, "dezembro": 12,
}

# Caracteres isolados que são colados ao vizinho ao colapsar letras espaçadas
_JUNTAVEIS = set("$/-–.,ªº°")

_RE_ESPACOS = re.compile(r"\s+")
_RE_CONTROLE = re.compile(r"[\x00-\x1f\x7f]")
_RE_NAO_BUSCA = re.compile(r"[^a-z0-9\s/\-\.]+")
_RE_DATA_EXTENSO = re.compile(r"(\d{1,2})\s+de\s+([^\W\d_]+)\s+de\s+(\d{4})", re.IGNORECASE)
_FORMATOS_DATA = ("%d/%m/%Y", "%d/%m/%y", "%d-%m-%Y", "%d-%m-%y")

TAMANHO_TRECHO = 160


# ══════════════════════════════════════════════════════════════════════
# ESPAÇOS, ACENTOS E CAIXA
# ══════════════════════════════════════════════════════════════════════

def normalizar_espacos(texto: str | None) -> str:
    if not texto:
        return ""
    return _RE_ESPACOS.sub(" ", texto).strip()


def remover_acentos(texto: str | None) -> str:
    """NFD → remove marcas combinantes → NFC."""
    if not texto:
        return ""
    decomposto = unicodedata.normalize("NFD", texto)
    sem_marcas = "".join(c for c in decomposto if unicodedata.category(c) != "Mn")
    return unicodedata.normalize("NFC", sem_marcas)


def normalizar_para_hash(texto: str | None) -> str:
    if not texto:
        return ""
    t = _RE_CONTROLE.sub(" ", texto.lower())
    return normalizar_espacos(t)


def normalizar_para_busca(texto: str | None) -> str:
    """
    Forma canônica para comparação por substring:
    colapsa letras espaçadas, remove acentos, minúsculas, troca símbolos
    por espaço (mantém / - .) e colapsa espaços.
    """
    if not texto:
        return ""
    t = colapsar_letras_espacadas(texto)
    t = remover_acentos(t).lower()
    t = _RE_NAO_BUSCA.sub(" ", t)
    return normalizar_espacos(t)


def normalizar_para_diff(texto: str | None) -> str:
    if not texto:
        return ""
    return remover_acentos(texto).lower()


def contem_algum(texto_norm: str, dicas: Iterable[str]) -> bool:
    """True se alguma dica (normalizada) aparece no texto já normalizado."""
    for dica in dicas:
        if not dica or not dica.strip():
            continue
        alvo = normalizar_para_busca(dica)
        if alvo and alvo in texto_norm:
            return True
    return False


# ══════════════════════════════════════════════════════════════════════
# TOKENS
# ══════════════════════════════════════════════════════════════════════

def colapsar_caracteres_dobrados(token: str) -> str:
    """
    Desfaz glifos duplicados pelo PDF ("DDEESSPPAACCHHOO" → "DESPACHO").
    Só atua em tokens de tamanho par ≥ 4 com ao menos 70% dos pares iguais.
    """
    if not token or len(token) < 4 or len(token) % 2 != 0:
        return token
    pares = len(token) // 2
    iguais = sum(1 for i in range(0, len(token), 2) if token[i] == token[i + 1])
    if iguais >= max(3, math.ceil(0.7 * pares)):
        return token[::2]
    return token


def normalizar_token(token: str | None) -> str:
    if not token:
        return ""
    return colapsar_caracteres_dobrados(token)


def eh_token_juntavel(token: str) -> bool:
    """Token de um único caractere alfanumérico ou de pontuação numérica."""
    if not token or len(token) != 1:
        return False
    return token.isalnum() or token in _JUNTAVEIS


def colapsar_letras_espacadas(texto: str | None) -> str:
    """Cola sequências de tokens de 1 caractere: "P r o c e s s o" → "Processo"."""
    if not texto or not texto.strip():
        return ""
    saida: list[str] = []
    buffer = ""
    for tok in texto.split():
        if eh_token_juntavel(tok):
            buffer += tok
            continue
        if buffer:
            saida.append(buffer)
            buffer = ""
        saida.append(tok)
    if buffer:
        saida.append(buffer)
    return " ".join(saida).strip()


# ══════════════════════════════════════════════════════════════════════
# PALAVRAS E GEOMETRIA
# ══════════════════════════════════════════════════════════════════════

def deduplicar_palavras(palavras: Iterable[Palavra], casas: int = 3) -> list[Palavra]:
    """Remove palavras repetidas por (texto, bbox arredondada). Ignora vazias."""
    vistas = set()
    saida = []
    for p in palavras or []:
        if not p.texto or not p.texto.strip():
            continue
        chave = (
            p.texto,
            round(p.x0, casas), round(p.y0, casas),
            round(p.x1, casas), round(p.y1, casas),
        )
        if chave in vistas:
            continue
        vistas.add(chave)
        saida.append(p)
    return saida


def ordenar_leitura(palavras: Iterable[Palavra]) -> list[Palavra]:
    """Ordem de leitura: de cima para baixo (−centro_y), depois x0."""
    return sorted(palavras, key=lambda p: (-p.centro_y, p.x0))


def _limitar(v: float) -> float:
    return min(1.0, max(0.0, v))


def unir_bbox(palavras: Iterable[Palavra]) -> Optional[BBox]:
    lista = list(palavras or [])
    if not lista:
        return None
    return BBox(
        x0=_limitar(min(p.x0 for p in lista)),
        y0=_limitar(min(p.y0 for p in lista)),
        x1=_limitar(max(p.x1 for p in lista)),
        y1=_limitar(max(p.y1 for p in lista)),
    )


def unir_caixas(caixas: Iterable[Optional[BBox]]) -> Optional[BBox]:
    lista = [c for c in caixas or [] if c is not None]
    if not lista:
        return None
    return BBox(
        x0=_limitar(min(c.x0 for c in lista)),
        y0=_limitar(min(c.y0 for c in lista)),
        x1=_limitar(max(c.x1 for c in lista)),
        y1=_limitar(max(c.y1 for c in lista)),
    )


# ══════════════════════════════════════════════════════════════════════
# HASH E TRECHOS
# ══════════════════════════════════════════════════════════════════════

def sha256_hex(texto: str | None) -> str:
    return hashlib.sha256((texto or "").encode("utf-8")).hexdigest()


def trecho_seguro(texto: str | None, inicio: int, tamanho: int,
                  maximo: int = TAMANHO_TRECHO) -> str:
    if not texto:
        return ""
    inicio = max(0, min(inicio, len(texto)))
    tamanho = max(0, min(tamanho, maximo, len(texto) - inicio))
    return texto[inicio:inicio + tamanho]


def trecho_em_torno(texto: str | None, indice: int, margem: int = 40) -> str:
    """Trecho de até 160 caracteres começando `margem` antes do índice."""
    inicio = max(0, indice - margem)
    return trecho_seguro(texto, inicio, TAMANHO_TRECHO)


# ══════════════════════════════════════════════════════════════════════
# CPF, VALORES E DATAS
# ══════════════════════════════════════════════════════════════════════

def normalizar_cpf(bruto: str | None) -> str:
    """Mantém só os dígitos. Idempotente."""
    if not bruto:
        return ""
    return "".join(c for c in bruto if c in "0123456789")


def parse_valor_br(texto: str | None) -> Optional[Decimal]:
    """
    Converte valor monetário no formato brasileiro para Decimal.
    Aceita: 'R$ 1.999,80', '0,30', '9.000,00'
    """
    if not texto or not texto.strip():
        return None
    limpo = texto.strip().replace("R$", "").strip()
    limpo = limpo.replace(".", "").replace(",", ".")
    if not limpo:
        return None
    try:
        valor = Decimal(limpo)
    except InvalidOperation:
        return None
    if not valor.is_finite():
        return None
    return valor


def formatar_valor(valor: Decimal) -> str:
    """Decimal → 'R$ 1.234,56'."""
    s = f"{valor:,.2f}"
    return "R$ " + s.replace(",", "X").replace(".", ",").replace("X", ".")


def normalizar_valor(texto: str | None) -> str:
    """Canoniza para 'R$ <milhar>,<2 dígitos>'; "" quando não é valor."""
    valor = parse_valor_br(texto)
    if valor is None:
        return ""
    return formatar_valor(valor)


def parse_data(texto: str | None) -> Optional[str]:
    """
    Converte data para ISO (aaaa-mm-dd). Formatos aceitos:

    - DD/MM/AAAA, D/M/AAAA, DD/MM/AA (também com "-")
    - DD de mês de AAAA (mês por extenso, com ou sem acento)
    """
    if not texto or not texto.strip():
        return None
    t = texto.strip()

    for fmt in _FORMATOS_DATA:
        try:
            return datetime.strptime(t, fmt).date().isoformat()
        except ValueError:
            continue

    m = _RE_DATA_EXTENSO.search(t)
    if m:
        mes = MESES_EXTENSO.get(remover_acentos(m.group(2)).lower())
        if mes:
            try:
                return datetime(int(m.group(3)), mes, int(m.group(1))).date().isoformat()
            except ValueError:
                return None
    return None


def formatar_data_br(iso: str) -> str:
    try:
        return datetime.strptime(iso, "%Y-%m-%d").strftime("%d/%m/%Y")
    except (TypeError, ValueError):
        return iso or ""


# ══════════════════════════════════════════════════════════════════════
# NOMES E CORTES
# ══════════════════════════════════════════════════════════════════════

_RE_PERITO = re.compile(r"\bperit[oa]\b", re.IGNORECASE)
_RE_EMAIL_COLADO = re.compile(r"\s*[-–]\s*[^\s@]*@[^\s,;]+")
_RE_NAO_NOME = re.compile(r"[^\w\s'\-]|[\d_]")
_RE_CAMEL = re.compile(r"(?<=[a-záâãàéêíóôõúç])(?=[A-ZÁÂÃÀÉÊÍÓÔÕÚÇ])")


def cortar_em_palavras(valor: str | None, palavras: Iterable[str]) -> str:
    """
    Corta o valor na primeira ocorrência (sem caixa) de qualquer palavra,
    desde que não esteja na posição 0, e apara pontuação final.
    """
    if not valor or not valor.strip():
        return valor or ""
    minusculo = valor.lower()
    posicoes = [minusculo.find(p.lower()) for p in palavras if p and p.strip()]
    posicoes = [i for i in posicoes if i >= 0]
    v = valor
    if posicoes and min(posicoes) > 0:
        v = v[:min(posicoes)]
    return v.strip().rstrip(",;.-–").strip()


def limpar_nome_pessoa(valor: str | None) -> str:
    """
    Limpa um nome de pessoa vindo do texto do PDF: remove "perito(a)",
    e-mails colados, dígitos e símbolos; separa palavras coladas
    ("RobsonLima" → "Robson Lima").
    """
    if not valor or not valor.strip():
        return ""
    v = colapsar_letras_espacadas(valor)
    v = _RE_PERITO.sub("", v)
    v = _RE_EMAIL_COLADO.sub("", v)
    v = _RE_NAO_NOME.sub(" ", v)
    v = _RE_CAMEL.sub(" ", v)
    return normalizar_espacos(v)


_RE_DOC_PARTE = re.compile(r"\b(CPF|CNPJ)\b.*$", re.IGNORECASE)
_RE_PERANTE = re.compile(r"\bperante\b.*$", re.IGNORECASE)
_RE_JUIZO = re.compile(r"\bju[ií]zo\b.*$", re.IGNORECASE)

_TERMOS_INSTITUCIONAIS = (
    "juizo", "vara", "comarca", "tribunal", "poder judiciario",
    "diretoria", "secretaria", "cartorio", "serventia",
)


def limpar_nome_parte(valor: str | None) -> str:
    """Nome de parte processual sem documento, sem "perante/juízo ..." e sem dígitos."""
    if not valor or not valor.strip():
        return ""
    v = colapsar_letras_espacadas(valor)
    v = _RE_DOC_PARTE.sub("", v)
    v = _RE_PERANTE.sub("", v)
    v = _RE_JUIZO.sub("", v)
    v = re.sub(r"\d+", "", v)
    v = _RE_NAO_NOME.sub(" ", v)
    return normalizar_espacos(v.strip().strip(",;-– "))


def parece_nome_parte(valor: str | None) -> bool:
    if not valor or len(valor.strip()) < 4 or "@" in valor:
        return False
    if "perito" in normalizar_para_busca(valor):
        return False
    return any(c.isalpha() for c in valor)


def eh_valor_institucional(valor: str | None) -> bool:
    """Juízo, vara, tribunal etc. nunca são parte processual."""
    norm = normalizar_para_busca(valor)
    return bool(norm) and any(t in norm for t in _TERMOS_INSTITUCIONAIS)
