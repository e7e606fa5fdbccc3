# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/leitor_pdf.py — Leitura do PDF (palavras, marcadores, assinaturas)
# ══════════════════════════════════════════════════════════════════════
"""
Adaptador entre o arquivo PDF e os registros de entrada (DadosPdf).

- pdfplumber: texto e palavras de cada página. As caixas são normalizadas
  para [0, 1] com Y crescendo para cima (y0 = base, y1 = topo).
- PyMuPDF (fitz): sumário (get_toc) e campos de assinatura digital
  (widgets do tipo assinatura + dicionário /V: Name, Reason, Location, M).

Qualquer falha de leitura degrada para coleções vazias, com aviso no log:
a extração continua e termina com "no_candidates_found".
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF
import pdfplumber

from extrator_despacho.modelos import (
    AssinaturaDigital,
    BBox,
    DadosPdf,
    Marcador,
    PaginaPdf,
    Palavra,
    WidgetAssinatura,
)

log = logging.getLogger("extrator_despacho")

_RE_DATA_PDF = re.compile(r"D?:?(\d{4})(\d{2})(\d{2})(\d{2})?(\d{2})?(\d{2})?")


class ErroLeituraPdf(Exception):
    """PDF ausente, corrompido ou protegido."""


def _limitar(v: float) -> float:
    return max(0.0, min(1.0, v))


# ══════════════════════════════════════════════════════════════════════
# PÁGINAS E PALAVRAS (pdfplumber)
# ══════════════════════════════════════════════════════════════════════

def palavra_normalizada(bruta: dict, largura: float, altura: float) -> Optional[Palavra]:
    """Palavra do pdfplumber (top/bottom a partir do topo) → caixa normalizada, Y para cima."""
    texto = (bruta.get("text") or "").strip()
    if not texto or largura <= 0 or altura <= 0:
        return None
    return Palavra(
        texto=texto,
        x0=_limitar(float(bruta["x0"]) / largura),
        x1=_limitar(float(bruta["x1"]) / largura),
        y0=_limitar(1.0 - float(bruta["bottom"]) / altura),
        y1=_limitar(1.0 - float(bruta["top"]) / altura),
    )


def _ler_paginas(caminho: Path) -> list[PaginaPdf]:
    paginas = []
    try:
        with pdfplumber.open(caminho) as pdf:
            for i, pagina in enumerate(pdf.pages, start=1):
                largura, altura = float(pagina.width), float(pagina.height)
                palavras = []
                for bruta in pagina.extract_words(keep_blank_chars=False, use_text_flow=False):
                    p = palavra_normalizada(bruta, largura, altura)
                    if p is not None:
                        palavras.append(p)
                paginas.append(PaginaPdf(
                    numero=i,
                    texto=pagina.extract_text() or "",
                    rotacao=int(getattr(pagina, "rotation", 0) or 0),
                    palavras=palavras,
                ))
    except Exception as e:
        raise ErroLeituraPdf(f"pdfplumber: {e}") from e
    return paginas


# ══════════════════════════════════════════════════════════════════════
# MARCADORES E ASSINATURAS (PyMuPDF)
# ══════════════════════════════════════════════════════════════════════

def montar_arvore_marcadores(toc: list) -> list[Marcador]:
    """[[nível, título, página, ...], ...] (get_toc) → árvore de Marcador."""
    raizes: list[Marcador] = []
    pilha: list[Marcador] = []
    for item in toc or []:
        nivel, titulo, pagina = int(item[0]), str(item[1] or ""), int(item[2] or 0)
        m = Marcador(titulo=titulo, nivel=nivel, pagina=max(0, pagina))
        while pilha and pilha[-1].nivel >= nivel:
            pilha.pop()
        if pilha:
            pilha[-1].filhos.append(m)
        else:
            raizes.append(m)
        pilha.append(m)
    return raizes


def data_pdf_iso(valor: str | None) -> Optional[str]:
    """ "D:20240115103000-03'00'" → "2024-01-15T10:30:00"."""
    if not valor:
        return None
    m = _RE_DATA_PDF.search(valor)
    if not m:
        return None
    partes = [int(g) if g else 0 for g in m.groups()]
    try:
        return datetime(*partes).isoformat()
    except ValueError:
        return None


def _texto_xref(doc, xref: int, chave: str) -> str:
    tipo, valor = doc.xref_get_key(xref, chave)
    if tipo in ("null", None) or not valor:
        return ""
    if tipo == "string":
        return valor
    return valor.strip("()/")


def _valor_assinatura(doc, widget) -> dict:
    tipo, valor = doc.xref_get_key(widget.xref, "V")
    if tipo != "xref":
        return {}
    partes = (valor or "").split()
    if not partes or not partes[0].isdigit():
        return {}
    xref_v = int(partes[0])
    return {
        "nome": _texto_xref(doc, xref_v, "Name"),
        "motivo": _texto_xref(doc, xref_v, "Reason"),
        "local": _texto_xref(doc, xref_v, "Location"),
        "data": data_pdf_iso(_texto_xref(doc, xref_v, "M")),
    }


def _ler_marcadores_e_assinaturas(caminho: Path) -> tuple[list[Marcador], list[AssinaturaDigital]]:
    try:
        doc = fitz.open(caminho)
    except Exception as e:
        raise ErroLeituraPdf(f"PyMuPDF: {e}") from e

    try:
        marcadores = montar_arvore_marcadores(doc.get_toc(simple=False))
        por_campo: dict[str, AssinaturaDigital] = {}
        for indice, pagina in enumerate(doc, start=1):
            largura, altura = pagina.rect.width, pagina.rect.height
            for widget in pagina.widgets() or []:
                if widget.field_type != fitz.PDF_WIDGET_TYPE_SIGNATURE:
                    continue
                nome_campo = widget.field_name or ""
                assinatura = por_campo.get(nome_campo)
                if assinatura is None:
                    v = _valor_assinatura(doc, widget)
                    assinatura = AssinaturaDigital(
                        campo=nome_campo,
                        nome_assinante=v.get("nome", ""),
                        motivo=v.get("motivo", ""),
                        local=v.get("local", ""),
                        data=v.get("data"),
                    )
                    por_campo[nome_campo] = assinatura
                r = widget.rect
                if largura > 0 and altura > 0 and r.width > 0 and r.height > 0:
                    bbox = BBox(
                        x0=_limitar(r.x0 / largura), x1=_limitar(r.x1 / largura),
                        y0=_limitar(1.0 - r.y1 / altura), y1=_limitar(1.0 - r.y0 / altura),
                    )
                    assinatura.widgets.append(WidgetAssinatura(pagina=indice, bbox=bbox))
        return marcadores, list(por_campo.values())
    except Exception as e:
        raise ErroLeituraPdf(f"PyMuPDF: {e}") from e
    finally:
        doc.close()


# ══════════════════════════════════════════════════════════════════════
# ENTRADA
# ══════════════════════════════════════════════════════════════════════

def ler_pdf(caminho: str | Path) -> DadosPdf:
    """Lê o PDF inteiro. Falha de leitura → DadosPdf sem páginas (aviso no log)."""
    arquivo = Path(caminho)
    dados = DadosPdf(caminho=str(arquivo), nome_arquivo=arquivo.name)
    if not arquivo.is_file():
        log.warning("[LEITOR] Arquivo não encontrado: %s", arquivo)
        return dados

    try:
        dados.paginas = _ler_paginas(arquivo)
    except ErroLeituraPdf as e:
        log.warning("[LEITOR] Falha ao ler páginas de %s: %s", arquivo.name, e)
        return dados

    try:
        dados.marcadores, dados.assinaturas = _ler_marcadores_e_assinaturas(arquivo)
    except ErroLeituraPdf as e:
        log.warning("[LEITOR] Falha ao ler marcadores/assinaturas de %s: %s", arquivo.name, e)

    log.info("[LEITOR] %s: %d páginas, %d marcadores, %d assinaturas",
             arquivo.name, len(dados.paginas), len(dados.marcadores), len(dados.assinaturas))
    return dados
