# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/evidencia.py — Construção de campos com proveniência
# ══════════════════════════════════════════════════════════════════════
"""
Todo campo encontrado carrega página, bbox e trecho. Parágrafos, faixas
(SegmentoBanda) e regiões têm a mesma forma (pagina, palavras, texto,
bbox), então um único conjunto de funções monta a evidência para os três.

A bbox de um match é a união das palavras cujo intervalo de caracteres
intersecta o grupo casado.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Protocol, Union

from extrator_despacho.modelos import BBox, Campo, Evidencia, Palavra, nao_encontrado
from extrator_despacho.texto import (
    TAMANHO_TRECHO,
    deduplicar_palavras,
    eh_token_juntavel,
    normalizar_espacos,
    normalizar_token,
    ordenar_leitura,
    trecho_em_torno,
    unir_bbox,
)

Span = tuple[Palavra, int, int]


class AlvoTexto(Protocol):
    """Paragrafo, SegmentoBanda ou Regiao."""

    pagina: int
    palavras: list[Palavra]
    texto: str
    bbox: Optional[BBox]


# ══════════════════════════════════════════════════════════════════════
# CAMPOS
# ══════════════════════════════════════════════════════════════════════

def montar_campo(valor: str | None, confianca: float, metodo: str, trecho: str = "",
                 pagina: Optional[int] = None, bbox: Optional[BBox] = None) -> Campo:
    """
    Valor vazio vira "-". Com página conhecida → evidência completa;
    sem página mas com trecho → evidência só com o trecho (página 0).
    """
    campo = Campo(
        valor=valor.strip() if valor and valor.strip() else "-",
        confianca=confianca,
        metodo=metodo,
    )
    if pagina is not None:
        campo.evidencia = Evidencia(pagina=pagina, bbox=bbox, trecho=(trecho or "")[:TAMANHO_TRECHO])
    elif trecho and trecho.strip():
        campo.evidencia = Evidencia(pagina=0, trecho=trecho[:TAMANHO_TRECHO])
    return campo


def campo_do_alvo(valor: str, confianca: float, metodo: str, alvo: AlvoTexto,
                  trecho: str = "", bbox: Optional[BBox] = None) -> Campo:
    return montar_campo(valor, confianca, metodo, trecho, alvo.pagina, bbox or alvo.bbox)


def campo_do_match(valor: str, confianca: float, metodo: str, alvo: AlvoTexto,
                   m: re.Match, grupo: Union[int, str] = 0, trecho: Optional[str] = None) -> Campo:
    """Campo com bbox restrita às palavras do grupo casado (ou do alvo inteiro)."""
    try:
        inicio, fim = m.span(grupo)
    except IndexError:
        inicio, fim = m.span(0)
    bbox = bbox_do_intervalo(spans_palavras(alvo.palavras), inicio, fim - inicio) or alvo.bbox
    if trecho is None:
        trecho = trecho_do_match(alvo.texto, m)
    return montar_campo(valor, confianca, metodo, trecho, alvo.pagina, bbox)


def garantir(campo: Optional[Campo]) -> Campo:
    return campo if campo is not None and campo.encontrado else nao_encontrado()


def trecho_do_match(texto: str | None, m: re.Match) -> str:
    return trecho_em_torno(texto, m.start())


# ══════════════════════════════════════════════════════════════════════
# SPANS PALAVRA ↔ CARACTERE
# ══════════════════════════════════════════════════════════════════════

def spans_palavras(palavras: Iterable[Palavra]) -> list[Span]:
    """Intervalos de caracteres das palavras unidas por um espaço."""
    spans: list[Span] = []
    pos = 0
    for i, p in enumerate(deduplicar_palavras(palavras)):
        if i > 0:
            pos += 1
        token = normalizar_token(p.texto)
        spans.append((p, pos, pos + len(token)))
        pos += len(token)
    return spans


def texto_com_spans(palavras: Iterable[Palavra]) -> tuple[str, list[Span]]:
    """Texto exatamente coberto por `spans_palavras` (tokens unidos por um espaço)."""
    spans = spans_palavras(palavras)
    return " ".join(normalizar_token(p.texto) for p, _, _ in spans), spans


def bbox_do_intervalo(spans: list[Span], inicio: int, tamanho: int) -> Optional[BBox]:
    if not spans or inicio < 0 or tamanho <= 0:
        return None
    fim = inicio + tamanho
    return unir_bbox(p for p, s, e in spans if s < fim and e > inicio)


def texto_colapsado_com_spans(palavras: Iterable[Palavra]) -> tuple[str, list[Span]]:
    """
    Texto em ordem de leitura em que tokens de um caractere são colados
    aos vizinhos ("R $ 1 . 0 0 0 , 0 0" → "R$1.000,00"), com os spans.
    """
    partes: list[str] = []
    spans: list[Span] = []
    tamanho = 0
    anterior_juntavel = False
    for p in ordenar_leitura(deduplicar_palavras(palavras)):
        token = normalizar_token(p.texto)
        if not token:
            continue
        juntavel = eh_token_juntavel(token)
        if tamanho > 0 and not juntavel and not anterior_juntavel:
            partes.append(" ")
            tamanho += 1
        spans.append((p, tamanho, tamanho + len(token)))
        partes.append(token)
        tamanho += len(token)
        anterior_juntavel = juntavel
    return "".join(partes), spans


def preparar_texto_casamento(palavras: Iterable[Palavra]) -> tuple[list[Palavra], str]:
    """Palavras em ordem de leitura e o texto correspondente (tokens normalizados)."""
    ordenadas = ordenar_leitura(deduplicar_palavras(palavras))
    texto = normalizar_espacos(" ".join(normalizar_token(p.texto) for p in ordenadas))
    return ordenadas, texto


def campo_de_spans(valor: str, confianca: float, metodo: str, texto: str, inicio: int,
                   tamanho: int, spans: list[Span], pagina: int) -> Campo:
    """Campo cujo trecho é reconstruído a partir das palavras em volta do match."""
    bbox = bbox_do_intervalo(spans, inicio, tamanho)
    janela_ini = max(0, inicio - 40)
    janela_fim = inicio + tamanho + 40
    trecho = normalizar_espacos(" ".join(p.texto for p, s, e in spans if e >= janela_ini and s <= janela_fim))
    if not trecho:
        trecho = trecho_em_torno(texto, inicio)
    return montar_campo(valor, confianca, metodo, trecho[:TAMANHO_TRECHO], pagina, bbox)
