# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/janelas.py — Janelas candidatas e intervalo final
# ══════════════════════════════════════════════════════════════════════
"""
Onde está o despacho dentro do PDF?

1. Marcadores: cada marcador vira o intervalo [página, próximo − 1]
   (o último vai até o fim do documento). Ficam os que parecem despacho
   ("despacho" ou alguma âncora de título), com filtro opcional por
   substring do título.
2. Sem marcador de despacho: janelas de 2, 3 e 4 páginas a partir de
   marcadores com "despacho" / "diesp" / "diretoria especial".
3. Cada janela é pontuada contra o texto-modelo (âncoras de cabeçalho,
   subcabeçalho, título e rodapé). Vence o maior score; empate → mais
   categorias de âncora.
4. Janela heurística tem o intervalo ajustado (volta uma página se a
   anterior tem cabeçalho, avança até achar o rodapé).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from extrator_despacho.config import ConfigExtrator
from extrator_despacho.modelos import DadosPdf, JanelaCandidata, Marcador, MarcadorPlano
from extrator_despacho.similaridade import similaridade_diff, similaridade_edicao
from extrator_despacho.texto import contem_algum, normalizar_espacos, normalizar_para_busca

log = logging.getLogger("extrator_despacho")

FONTE_MARCADOR = "bookmark"
FONTE_HEURISTICA = "heuristic"

_TAMANHOS_JANELA = (2, 3, 4)
_DICAS_MARCADOR_HEURISTICO = ("despacho", "diesp", "diretoria especial")
_LIMITE_TEXTO_ANCORA = 2000


@dataclass
class IntervaloMarcador:
    titulo: str
    nivel: int
    inicio: int
    fim: int


# ══════════════════════════════════════════════════════════════════════
# MARCADORES
# ══════════════════════════════════════════════════════════════════════

def _percorrer(marcadores: Iterable[Marcador]):
    for m in marcadores or []:
        yield m
        if m.filhos:
            yield from _percorrer(m.filhos)


def achatar_marcadores(marcadores: Iterable[Marcador]) -> list[MarcadorPlano]:
    """Marcadores com página resolvida, em pré-ordem."""
    return [
        MarcadorPlano(titulo=m.titulo or "", pagina=m.pagina, pagina0=m.pagina - 1, nivel=m.nivel)
        for m in _percorrer(marcadores) if m.pagina > 0
    ]


def intervalos_marcadores(marcadores: Iterable[Marcador], total_paginas: int) -> list[IntervaloMarcador]:
    ordenados = sorted((m for m in _percorrer(marcadores) if m.pagina > 0), key=lambda m: m.pagina)
    intervalos = []
    for i, m in enumerate(ordenados):
        fim = max(m.pagina, ordenados[i + 1].pagina - 1) if i + 1 < len(ordenados) else total_paginas
        intervalos.append(IntervaloMarcador(titulo=m.titulo or "", nivel=m.nivel, inicio=m.pagina, fim=fim))
    return intervalos


def eh_marcador_despacho(titulo: str, config: ConfigExtrator) -> bool:
    norm = normalizar_para_busca(titulo)
    if not norm:
        return False
    return "despacho" in norm or contem_algum(norm, config.ancoras.titulo)


def janelas_heuristicas(marcadores: Iterable[MarcadorPlano], total_paginas: int) -> list[tuple[int, int]]:
    janelas: list[tuple[int, int]] = []
    for m in marcadores:
        if not any(d in normalizar_para_busca(m.titulo) for d in _DICAS_MARCADOR_HEURISTICO):
            continue
        for tamanho in _TAMANHOS_JANELA:
            fim = min(total_paginas, m.pagina + tamanho - 1)
            if fim >= m.pagina and (m.pagina, fim) not in janelas:
                janelas.append((m.pagina, fim))
    return janelas


# ══════════════════════════════════════════════════════════════════════
# PONTUAÇÃO
# ══════════════════════════════════════════════════════════════════════

def calcular_densidades(dados: DadosPdf) -> dict[int, float]:
    """Área ocupada por palavras / área da página (coordenadas normalizadas)."""
    densidades = {}
    for i, pagina in enumerate(dados.paginas, start=1):
        area = sum(max(0.0, (p.x1 - p.x0) * (p.y1 - p.y0)) for p in pagina.palavras)
        densidades[i] = area
    return densidades


def _ancoras_modelo(config: ConfigExtrator) -> list[str]:
    a = config.ancoras
    return [x for x in (*a.cabecalho, *a.subcabecalho, *a.titulo, *a.rodape) if x and x.strip()]


def texto_modelo(config: ConfigExtrator) -> str:
    return " ".join(_ancoras_modelo(config))


def texto_ancoras(texto: str, config: ConfigExtrator) -> str:
    """Linhas que contêm alguma âncora; sem nenhuma, os primeiros 2000 caracteres."""
    if not texto or not texto.strip():
        return ""
    ancoras = [normalizar_para_busca(a) for a in _ancoras_modelo(config)]
    ancoras = [a for a in ancoras if a]
    escolhidas = [l for l in texto.split("\n") if any(a in normalizar_para_busca(l) for a in ancoras)]
    if not escolhidas:
        return normalizar_espacos(texto)[:_LIMITE_TEXTO_ANCORA]
    return "\n".join(escolhidas)


def categorias_ancora(texto_norm: str, config: ConfigExtrator) -> list[str]:
    a = config.ancoras
    categorias = []
    if contem_algum(texto_norm, a.cabecalho):
        categorias.append("HEADER_TJPB")
    if contem_algum(texto_norm, a.subcabecalho):
        categorias.append("DIRETORIA_ESPECIAL")
    if contem_algum(texto_norm, a.titulo):
        categorias.append("DESPACHO_TITULO")
    if contem_algum(texto_norm, a.rodape):
        categorias.append("ASSINATURA_ELETRONICA")
    return categorias


def pontuar_janela(dados: DadosPdf, inicio: int, fim: int, densidades: dict[int, float],
                   config: ConfigExtrator, titulo: Optional[str] = None,
                   nivel: Optional[int] = None, fonte: str = "") -> JanelaCandidata:
    texto = "\n".join((dados.pagina(p).texto or "") for p in range(inicio, fim + 1) if dados.pagina(p))
    norm = normalizar_para_busca(texto)
    ancoras = categorias_ancora(norm, config)

    modelo = normalizar_para_busca(texto_modelo(config))
    alvo = normalizar_para_busca(texto_ancoras(texto, config))
    score_edicao = similaridade_edicao(modelo, alvo)
    if score_edicao < config.correspondencia.score_minimo:
        score_diff = similaridade_diff(modelo, alvo)
    else:
        score_diff = score_edicao

    sinais = {
        "hasRobson": contem_algum(norm, config.ancoras.dicas_assinante),
        "hasCRC": "crc" in norm,
        "hasDiretoriaEspecial": "DIRETORIA_ESPECIAL" in ancoras,
    }
    if fonte:
        sinais["source"] = fonte
    if titulo:
        sinais["bookmarkTitle"] = titulo
    if nivel is not None:
        sinais["bookmarkLevel"] = nivel

    return JanelaCandidata(
        pagina_inicio=inicio,
        pagina_fim=fim,
        score_edicao=score_edicao,
        score_diff=score_diff,
        ancoras=ancoras,
        densidade={f"p{p}": densidades.get(p, 0.0) for p in range(inicio, fim + 1)},
        sinais=sinais,
    )


def pontuar_candidatas(dados: DadosPdf, config: ConfigExtrator, filtro_marcador: str = "") -> list[JanelaCandidata]:
    """Intervalos de marcador de despacho; sem nenhum, janelas heurísticas."""
    total = dados.total_paginas
    densidades = calcular_densidades(dados)
    filtro = (filtro_marcador or "").strip().lower()

    intervalos = [
        i for i in intervalos_marcadores(dados.marcadores, total)
        if eh_marcador_despacho(i.titulo, config) and (not filtro or filtro in i.titulo.lower())
    ]
    if intervalos:
        return [pontuar_janela(dados, i.inicio, i.fim, densidades, config, i.titulo, i.nivel, FONTE_MARCADOR)
                for i in intervalos]

    planos = achatar_marcadores(dados.marcadores)
    return [pontuar_janela(dados, ini, fim, densidades, config, fonte=FONTE_HEURISTICA)
            for ini, fim in janelas_heuristicas(planos, total)]


def melhor_candidata(candidatas: list[JanelaCandidata]) -> Optional[JanelaCandidata]:
    """Maior score; empate → mais categorias de âncora; depois a ordem de entrada."""
    if not candidatas:
        return None
    return sorted(candidatas, key=lambda c: (-c.melhor_score, -len(c.ancoras)))[0]


# ══════════════════════════════════════════════════════════════════════
# INTERVALO FINAL
# ══════════════════════════════════════════════════════════════════════

def _pagina_tem_rodape(dados: DadosPdf, pagina: int, config: ConfigExtrator) -> bool:
    pg = dados.pagina(pagina)
    return pg is not None and contem_algum(normalizar_para_busca(pg.texto), config.ancoras.rodape)


def ajustar_intervalo(dados: DadosPdf, inicio: int, fim: int, config: ConfigExtrator) -> tuple[int, int]:
    total = dados.total_paginas
    doc = config.documento

    if inicio > 1:
        anterior = dados.pagina(inicio - 1)
        if anterior is not None and contem_algum(normalizar_para_busca(anterior.texto), config.ancoras.cabecalho):
            inicio -= 1

    tem_rodape = any(_pagina_tem_rodape(dados, p, config) for p in range(inicio, fim + 1))

    while fim - inicio + 1 < doc.min_paginas and fim < total:
        fim += 1
        tem_rodape = tem_rodape or _pagina_tem_rodape(dados, fim, config)

    while not tem_rodape and fim < total and fim - inicio + 1 < doc.max_paginas:
        fim += 1
        tem_rodape = _pagina_tem_rodape(dados, fim, config)

    if fim - inicio + 1 > doc.max_paginas:
        fim = inicio + doc.max_paginas - 1
    return inicio, fim


def intervalo_final(dados: DadosPdf, janela: JanelaCandidata, config: ConfigExtrator) -> tuple[int, int]:
    """Intervalo de marcador é usado como está; janela heurística é ajustada."""
    if janela.fonte.lower() == FONTE_MARCADOR:
        return janela.pagina_inicio, janela.pagina_fim
    return ajustar_intervalo(dados, janela.pagina_inicio, janela.pagina_fim, config)
