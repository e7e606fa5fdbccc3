# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/segmentacao.py — Palavras → linhas → parágrafos → faixas
# ══════════════════════════════════════════════════════════════════════
"""
Reconstrução da estrutura visual de uma página a partir das palavras
posicionadas (coordenadas normalizadas, Y para cima).

Faixas da página (do topo para a base):

    header     cy ≥ 1 − cabecalho_topo
    subheader  cy ≥ header − subcabecalho   (title: linhas com "despacho")
    body       o restante
    footer     cy ≤ rodape_base
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable

from extrator_despacho.config import ConfigFaixas
from extrator_despacho.modelos import Banda, Linha, Palavra, Paragrafo, SegmentoBanda
from extrator_despacho.texto import (
    deduplicar_palavras,
    normalizar_espacos,
    normalizar_para_busca,
    normalizar_para_hash,
    normalizar_token,
    ordenar_leitura,
    sha256_hex,
    unir_bbox,
)

ORDEM_FAIXAS = ("header", "subheader", "title", "body", "footer")


# ══════════════════════════════════════════════════════════════════════
# LINHAS
# ══════════════════════════════════════════════════════════════════════

def _limiar_intervalo(ordenadas: list[Palavra], intervalo_x: float) -> float:
    """
    Com ≥ 4 intervalos positivos, o limiar passa a ser 30% do percentil 90
    dos intervalos da própria linha (nunca acima do configurado).
    """
    if len(ordenadas) < 4:
        return intervalo_x
    intervalos = sorted(
        g for g in (b.x0 - a.x1 for a, b in zip(ordenadas, ordenadas[1:])) if g > 0
    )
    if len(intervalos) < 4:
        return intervalo_x
    p90 = intervalos[math.floor(0.9 * (len(intervalos) - 1))]
    return max(0.001, min(intervalo_x, 0.3 * p90))


def montar_texto_linha(palavras: Iterable[Palavra], intervalo_x: float) -> str:
    """Texto de uma linha: espaço só quando o vão horizontal supera o limiar."""
    ordenadas = sorted(deduplicar_palavras(palavras), key=lambda p: p.x0)
    if not ordenadas:
        return ""
    limiar = _limiar_intervalo(ordenadas, intervalo_x)

    partes = []
    anterior = None
    for p in ordenadas:
        if anterior is not None and p.x0 - anterior.x1 > limiar:
            partes.append(" ")
        partes.append(normalizar_token(p.texto))
        anterior = p
    return normalizar_espacos("".join(partes))


def montar_linhas(palavras: Iterable[Palavra], juncao_y: float, intervalo_x: float) -> list[Linha]:
    """
    Agrupa palavras em linhas. Uma palavra abre nova linha quando o seu
    centro Y se afasta mais que `juncao_y` do centro da linha corrente
    (centro da primeira palavra da linha).
    """
    linhas: list[Linha] = []
    atual: list[Palavra] = []
    centro = 0.0

    def fechar():
        ordenadas = sorted(atual, key=lambda p: p.x0)
        linhas.append(Linha(
            palavras=ordenadas,
            texto=montar_texto_linha(ordenadas, intervalo_x),
            bbox=unir_bbox(ordenadas),
            centro_y=centro,
        ))

    for p in ordenar_leitura(deduplicar_palavras(palavras)):
        if not atual or abs(p.centro_y - centro) > juncao_y:
            if atual:
                fechar()
            atual = []
            centro = p.centro_y
        atual.append(p)
    if atual:
        fechar()
    return linhas


def montar_texto_palavras(palavras: Iterable[Palavra], juncao_y: float, intervalo_x: float) -> str:
    """Texto corrido de um conjunto arbitrário de palavras (região, faixa)."""
    return normalizar_espacos("\n".join(
        l.texto for l in montar_linhas(palavras, juncao_y, intervalo_x)
    ))


# ══════════════════════════════════════════════════════════════════════
# PARÁGRAFOS
# ══════════════════════════════════════════════════════════════════════

def montar_paragrafos(linhas: Iterable[Linha], pagina: int, intervalo_y: float) -> list[Paragrafo]:
    """
    Agrupa linhas (de cima para baixo) em parágrafos. Novo parágrafo quando
    a base do parágrafo corrente fica mais de `intervalo_y` acima do topo
    da próxima linha.
    """
    paragrafos: list[Paragrafo] = []
    palavras: list[Palavra] = []
    base = 0.0

    def fechar():
        ordenadas = ordenar_leitura(palavras)
        paragrafos.append(Paragrafo(
            pagina=pagina,
            indice=len(paragrafos),
            palavras=ordenadas,
            texto=normalizar_espacos(" ".join(p.texto for p in ordenadas)),
            bbox=unir_bbox(ordenadas),
        ))

    for linha in sorted(linhas, key=lambda l: -l.centro_y):
        topo = linha.bbox.y1 if linha.bbox else linha.centro_y
        fundo = linha.bbox.y0 if linha.bbox else linha.centro_y
        if palavras and base - topo > intervalo_y:
            fechar()
            palavras = []
        if not palavras:
            base = fundo
        else:
            base = min(base, fundo)
        palavras.extend(linha.palavras)
    if palavras:
        fechar()
    return paragrafos


# ══════════════════════════════════════════════════════════════════════
# FAIXAS
# ══════════════════════════════════════════════════════════════════════

@dataclass
class PaginaSegmentada:
    bandas: list[Banda] = field(default_factory=list)
    segmentos: list[SegmentoBanda] = field(default_factory=list)
    linhas: list[Linha] = field(default_factory=list)
    palavras_corpo: list[Palavra] = field(default_factory=list)


def _adicionar_faixa(resultado: PaginaSegmentada, pagina: int, nome: str, linhas: list[Linha]):
    if not linhas:
        return
    palavras = [p for l in linhas for p in l.palavras]
    texto = normalizar_espacos("\n".join(l.texto for l in linhas))
    bbox = unir_bbox(palavras)
    resultado.bandas.append(Banda(
        pagina=pagina,
        banda=nome,
        texto=texto,
        hash_sha256=sha256_hex(normalizar_para_hash(texto)),
        bbox=bbox,
    ))
    resultado.segmentos.append(SegmentoBanda(
        pagina=pagina, banda=nome, texto=texto, palavras=palavras, bbox=bbox,
    ))


def segmentar_pagina(palavras: Iterable[Palavra], pagina: int, faixas: ConfigFaixas,
                     juncao_y: float, intervalo_x: float) -> PaginaSegmentada:
    """Classifica cada linha da página numa faixa. Entrada vazia → saída vazia."""
    resultado = PaginaSegmentada()
    linhas = montar_linhas(palavras, juncao_y, intervalo_x)
    resultado.linhas = linhas
    if not linhas:
        return resultado

    inicio_cabecalho = 1.0 - faixas.cabecalho_topo
    inicio_subcabecalho = inicio_cabecalho - faixas.subcabecalho
    fim_rodape = faixas.rodape_base

    grupos: dict[str, list[Linha]] = {nome: [] for nome in ORDEM_FAIXAS}
    for linha in linhas:
        cy = linha.centro_y
        if cy >= inicio_cabecalho:
            grupos["header"].append(linha)
        elif cy >= inicio_subcabecalho:
            grupos["subheader"].append(linha)
            if "despacho" in normalizar_para_busca(linha.texto):
                grupos["title"].append(linha)
        elif cy <= fim_rodape:
            grupos["footer"].append(linha)
        else:
            grupos["body"].append(linha)

    resultado.palavras_corpo = [p for l in grupos["body"] for p in l.palavras]
    for nome in ORDEM_FAIXAS:
        _adicionar_faixa(resultado, pagina, nome, grupos[nome])
    return resultado
