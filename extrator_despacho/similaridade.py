# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/similaridade.py — Similaridade aproximada de textos
# ══════════════════════════════════════════════════════════════════════
"""
Uma única capacidade `similaridade(a, b) -> [0, 1]` com implementações
intercambiáveis, mais o alinhamento tolerante de âncoras usado pelos
templates de região.

- similaridade_edicao: 1 − distância de Levenshtein / maior comprimento
  (rapidfuzz)
- similaridade_diff: 1 − (remoções + inserções) / maior comprimento,
  a partir de um diff por caractere (difflib)
- alinhar_ancora: posição de um literal dentro do texto, a partir de um
  cursor, tolerando erros de extração
"""

from __future__ import annotations

from difflib import SequenceMatcher
from typing import Optional, Protocol

from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein


class Similaridade(Protocol):
    def __call__(self, a: str, b: str) -> float: ...


def similaridade_edicao(a: str, b: str) -> float:
    if not a or not b or not a.strip() or not b.strip():
        return 0.0
    return max(0.0, Levenshtein.normalized_similarity(a, b))


def similaridade_diff(a: str, b: str) -> float:
    a = a or ""
    b = b or ""
    maior = max(len(a), len(b))
    if maior == 0:
        return 0.0
    edicoes = 0
    for op, i1, i2, j1, j2 in SequenceMatcher(None, a, b, autojunk=False).get_opcodes():
        if op == "equal":
            continue
        edicoes += (i2 - i1) + (j2 - j1)
    return max(0.0, 1.0 - edicoes / maior)


def alinhar_ancora(texto: str, literal: str, inicio: int = 0,
                   minimo: float = 0.6) -> Optional[tuple[int, int]]:
    """
    Localiza `literal` em `texto[inicio:]` e devolve (início, fim) no texto
    completo, ou None. Tenta casamento exato; senão, o melhor alinhamento
    parcial com similaridade ≥ `minimo`.
    """
    if not literal or inicio >= len(texto):
        return None
    exato = texto.find(literal, inicio)
    if exato >= 0:
        return exato, exato + len(literal)

    resto = texto[inicio:]
    if len(literal) > len(resto):
        return None
    alinhamento = fuzz.partial_ratio_alignment(literal, resto, score_cutoff=minimo * 100)
    if alinhamento is None:
        return None
    return inicio + alinhamento.dest_start, inicio + alinhamento.dest_end
