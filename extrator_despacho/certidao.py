# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/certidao.py — Certidão do Conselho da Magistratura
# ══════════════════════════════════════════════════════════════════════
"""
A certidão é procurada de forma independente do despacho: páginas de
destino de marcadores cujo título contém "certidão". A primeira página
que passa em todas as verificações vence.

Verificações (na ordem), com o motivo da recusa:

    missing_header_hint     dica de cabeçalho no topo ou no texto da página
    missing_title_hint      dica de título
    missing_body_or_money   dica de corpo ou valor monetário
    missing_signer_footer   assinante conhecido no rodapé ou nas
                            assinaturas digitais da página
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from extrator_despacho.config import ConfigExtrator, compilar_padroes
from extrator_despacho.modelos import BBox, DadosPdf, Linha, Marcador, Paragrafo, Regiao
from extrator_despacho.regioes import montar_regiao_palavras
from extrator_despacho.segmentacao import (
    montar_linhas,
    montar_paragrafos,
    montar_texto_palavras,
    segmentar_pagina,
)
from extrator_despacho.texto import contem_algum, normalizar_para_busca

log = logging.getLogger("extrator_despacho")

MOTIVO_OK = "ok"


def _paginas_certidao(marcadores: Iterable[Marcador]) -> list[int]:
    paginas = []

    def percorrer(itens):
        for m in itens:
            if m.pagina > 0 and "certidao" in normalizar_para_busca(m.titulo):
                paginas.append(m.pagina)
            if m.filhos:
                percorrer(m.filhos)

    percorrer(marcadores or [])
    return sorted(set(paginas))


def _assinantes_da_pagina(dados: DadosPdf, pagina: int) -> list[str]:
    nomes = []
    for a in dados.assinaturas:
        paginas = [w.pagina for w in a.widgets] or [0]
        if any(p == 0 or p == pagina for p in paginas):
            nomes.append(a.nome_assinante or a.assunto_certificado or a.campo)
    return nomes


def verificar_pagina_certidao(dados: DadosPdf, pagina: int, config: ConfigExtrator) -> str:
    """Motivo da recusa, ou "ok"."""
    if not dados.paginas:
        return "no_pages"
    pg = dados.pagina(pagina)
    if pg is None:
        return "page_out_of_range"

    cfg = config.certidao
    seg = config.segmentacao
    texto_norm = normalizar_para_busca(pg.texto)
    segmentada = segmentar_pagina(pg.palavras, pagina, config.faixas, seg.juncao_linha_y, seg.intervalo_palavra_x)

    def texto_faixas(*nomes):
        palavras = [p for s in segmentada.segmentos if s.banda in nomes for p in s.palavras]
        return normalizar_para_busca(montar_texto_palavras(
            palavras, seg.juncao_linha_y, config.regioes_template.intervalo_palavra_x))

    topo_norm = texto_faixas("header", "subheader", "title")
    rodape_norm = texto_faixas("footer")

    if not (contem_algum(topo_norm, cfg.dicas_cabecalho) or contem_algum(texto_norm, cfg.dicas_cabecalho)):
        return "missing_header_hint"
    if not (contem_algum(topo_norm, cfg.dicas_titulo) or contem_algum(texto_norm, cfg.dicas_titulo)):
        return "missing_title_hint"

    tem_valor = bool(compilar_padroes(config.regex).valor.search(pg.texto or "")) or "r$" in (pg.texto or "").lower()
    if not contem_algum(texto_norm, cfg.dicas_corpo) and not tem_valor:
        return "missing_body_or_money"

    dicas = config.ancoras.dicas_assinante
    assinado = contem_algum(rodape_norm, dicas) or any(
        contem_algum(normalizar_para_busca(nome), dicas) for nome in _assinantes_da_pagina(dados, pagina)
    )
    if not assinado:
        return "missing_signer_footer"
    return MOTIVO_OK


def localizar_certidao(dados: DadosPdf, config: ConfigExtrator) -> int:
    """Página (1-based) da certidão, ou 0."""
    if not dados.paginas:
        return 0
    for pagina in _paginas_certidao(dados.marcadores):
        motivo = verificar_pagina_certidao(dados, pagina, config)
        if motivo == MOTIVO_OK:
            return pagina
        log.debug("[CERTIDAO] Página %d recusada: %s", pagina, motivo)
    return 0


# ══════════════════════════════════════════════════════════════════════
# REGIÕES DA CERTIDÃO
# ══════════════════════════════════════════════════════════════════════

def _paragrafo_inicial(paragrafos: list[Paragrafo]) -> Optional[Paragrafo]:
    normas = [(p, normalizar_para_busca(p.texto)) for p in paragrafos]
    for p, n in normas:
        if "certifico" in n and "conselho" in n and "magistratura" in n:
            return p
    for p, n in normas:
        if "certifico" in n:
            return p
    for p, n in normas:
        if "proferiram" in n and "decis" in n:
            return p
    return paragrafos[0] if paragrafos else None


def _paragrafo_valor(paragrafos: list[Paragrafo], padrao_valor) -> Optional[Paragrafo]:
    primeiro = None
    for p in paragrafos:
        if not padrao_valor.search(p.texto or ""):
            continue
        if primeiro is None:
            primeiro = p
        n = normalizar_para_busca(p.texto)
        if "honor" in n or "pagamento" in n or "autorizad" in n:
            return p
    return primeiro


def _com_data(itens, texto_de, padrao_data, dicas):
    """Último item com data que também tem dica; senão o último com data."""
    candidato = reserva = None
    for item in itens:
        texto = texto_de(item) or ""
        if not padrao_data.search(texto):
            continue
        reserva = item
        if contem_algum(normalizar_para_busca(texto), dicas):
            candidato = item
    return candidato or reserva


def montar_regioes_certidao(dados: DadosPdf, pagina: int, config: ConfigExtrator) -> list[Regiao]:
    regioes: list[Regiao] = []
    pg = dados.pagina(pagina)
    if pg is None:
        return regioes

    seg = config.segmentacao
    padroes = compilar_padroes(config.regex)
    segmentada = segmentar_pagina(pg.palavras, pagina, config.faixas, seg.juncao_linha_y, seg.intervalo_palavra_x)
    rodape = [p for s in segmentada.segmentos if s.banda == "footer" for p in s.palavras]
    palavras_corpo = list(segmentada.palavras_corpo) + rodape

    linhas: list[Linha] = montar_linhas(palavras_corpo, seg.juncao_linha_y, seg.intervalo_palavra_x)
    paragrafos = montar_paragrafos(linhas, pagina, seg.intervalo_paragrafo_y)

    inicial = _paragrafo_inicial(paragrafos)
    idx = paragrafos.index(inicial) if inicial is not None else 0
    completa = montar_regiao_palavras(
        "certidao_full", pagina, [w for p in paragrafos[idx:] for w in p.palavras], config)
    if completa is not None:
        if completa.bbox is not None:
            completa.bbox = BBox(x0=0.0, y0=completa.bbox.y0, x1=1.0, y1=completa.bbox.y1)
        regioes.append(completa)

    palavras_vd = []
    p_valor = _paragrafo_valor(paragrafos, padroes.valor)
    if p_valor is not None and p_valor.palavras:
        palavras_vd.extend(p_valor.palavras)
    else:
        linha_valor = next((l for l in linhas if padroes.valor.search(l.texto or "")), None)
        if linha_valor is not None:
            palavras_vd.extend(linha_valor.palavras)

    dicas_data = config.certidao.dicas_data
    p_data = _com_data(paragrafos, lambda p: p.texto, padroes.data_extenso, dicas_data)
    if p_data is not None and p_data.palavras:
        palavras_vd.extend(p_data.palavras)
    else:
        linha_data = _com_data(linhas, lambda l: l.texto, padroes.data_extenso, dicas_data)
        if linha_data is not None:
            palavras_vd.extend(linha_data.palavras)

    valor_data = montar_regiao_palavras("certidao_value_date", pagina, palavras_vd, config)
    if valor_data is not None:
        regioes.append(valor_data)
    return regioes
