# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/regioes.py — Regiões nomeadas do despacho
# ══════════════════════════════════════════════════════════════════════
"""
Regiões = subconjuntos de palavras de uma página recortados por faixa Y:

    first_top         1ª página do intervalo, faixa "primeira_pagina_topo"
    last_bottom       última página, faixa "ultima_pagina_base"
    second_bottom     2ª página (só com 3+ páginas), mesma faixa
    last_bottom_prev  penúltima página (2+ páginas), mesma faixa

As regiões alimentam os templates de região e várias passadas diretas
(tipo de despacho, partes, assinante).
"""

from __future__ import annotations

from typing import Iterable, Optional

from extrator_despacho.config import ConfigExtrator
from extrator_despacho.modelos import DadosPdf, Palavra, Regiao
from extrator_despacho.segmentacao import montar_texto_palavras
from extrator_despacho.texto import deduplicar_palavras, ordenar_leitura, unir_bbox


def _limitar(v: float) -> float:
    return max(0.0, min(1.0, v))


def montar_regiao_palavras(nome: str, pagina: int, palavras: Iterable[Palavra],
                           config: ConfigExtrator) -> Optional[Regiao]:
    """Região com todas as palavras dadas (em ordem de leitura). Vazio → None."""
    ordenadas = ordenar_leitura(deduplicar_palavras(palavras or []))
    if not ordenadas:
        return None
    texto = montar_texto_palavras(
        ordenadas,
        config.segmentacao.juncao_linha_y,
        config.regioes_template.intervalo_palavra_x,
    )
    return Regiao(nome=nome, pagina=pagina, palavras=ordenadas, texto=texto, bbox=unir_bbox(ordenadas))


def montar_regiao(nome: str, palavras: Iterable[Palavra], pagina: int, min_y: float, max_y: float,
                  config: ConfigExtrator) -> Optional[Regiao]:
    """Palavras que tocam a faixa [min_y, max_y] (limites trocados são aceitos)."""
    min_y, max_y = _limitar(min_y), _limitar(max_y)
    if min_y > max_y:
        min_y, max_y = max_y, min_y
    dentro = [p for p in palavras or [] if p.y1 >= min_y and p.y0 <= max_y]
    return montar_regiao_palavras(nome, pagina, dentro, config)


def montar_regioes_despacho(dados: DadosPdf, inicio: int, fim: int,
                            config: ConfigExtrator) -> list[Regiao]:
    regioes: list[Regiao] = []
    if not dados.paginas:
        return regioes

    primeira = dados.pagina(inicio)
    ultima = dados.pagina(fim)
    topo = config.regioes_template.primeira_pagina_topo
    base = config.regioes_template.ultima_pagina_base

    def adicionar(r: Optional[Regiao]):
        if r is not None:
            regioes.append(r)

    if primeira is not None:
        adicionar(montar_regiao("first_top", primeira.palavras, inicio, topo.min_y, topo.max_y, config))
    if ultima is not None:
        adicionar(montar_regiao("last_bottom", ultima.palavras, fim, base.min_y, base.max_y, config))
    if fim - inicio >= 2:
        segunda = dados.pagina(inicio + 1)
        if segunda is not None:
            adicionar(montar_regiao("second_bottom", segunda.palavras, inicio + 1, base.min_y, base.max_y, config))
    if fim > inicio:
        anterior = dados.pagina(fim - 1)
        if anterior is not None:
            adicionar(montar_regiao("last_bottom_prev", anterior.palavras, fim - 1, base.min_y, base.max_y, config))
    return regioes


def eh_regiao_base(nome: str) -> bool:
    """last_bottom, last_bottom_prev e second_bottom."""
    return nome.startswith("last_bottom") or nome == "second_bottom"
