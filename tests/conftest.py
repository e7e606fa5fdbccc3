"""Construtores de palavras, parágrafos e páginas sintéticas para os testes."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from extrator_despacho.config import ConfigExtrator
from extrator_despacho.modelos import PaginaPdf, Palavra, Paragrafo
from extrator_despacho.texto import unir_bbox

LARGURA_CARACTERE = 0.006
ALTURA_PALAVRA = 0.012
INTERVALO_PALAVRAS = 0.015


def palavra(texto, x0, y, largura=None, altura=ALTURA_PALAVRA):
    """Palavra com base em `y` (coordenadas normalizadas, Y para cima)."""
    largura = largura if largura is not None else LARGURA_CARACTERE * max(1, len(texto))
    return Palavra(texto=texto, x0=x0, y0=y, x1=x0 + largura, y1=y + altura)


def linha_de_palavras(texto, y, x0=0.08, intervalo=INTERVALO_PALAVRAS):
    """Uma linha: cada token do texto vira uma palavra, separadas por `intervalo`."""
    palavras = []
    x = x0
    for token in texto.split():
        p = palavra(token, x, y)
        palavras.append(p)
        x = p.x1 + intervalo
    return palavras


def paragrafo(texto, pagina=1, y=0.5, indice=0):
    palavras = linha_de_palavras(texto, y)
    return Paragrafo(
        pagina=pagina,
        indice=indice,
        palavras=palavras,
        texto=" ".join(p.texto for p in palavras),
        bbox=unir_bbox(palavras),
    )


def pagina(numero, linhas):
    """linhas = [(texto, y), ...] de cima para baixo."""
    palavras = []
    for texto, y in linhas:
        palavras.extend(linha_de_palavras(texto, y))
    return PaginaPdf(
        numero=numero,
        texto="\n".join(texto for texto, _ in linhas),
        palavras=palavras,
    )


@pytest.fixture
def config():
    return ConfigExtrator()
