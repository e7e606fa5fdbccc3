# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/arbitragem.py — Escolha entre semente e passada direta
# ══════════════════════════════════════════════════════════════════════
"""
Cada campo tem dois candidatos:

- semente: melhor acerto dos templates de região e das estratégias YAML
- direto: resultado da passada regex/heurística específica do campo

A escolha é uma lista ordenada de pares (predicado, regra) por categoria
de campo. A primeira regra cujo predicado vale decide.

    genérica      semente ausente → direto; direto ausente → semente;
                  semente ≥ direto → semente; senão direto
    parte         semente institucional ("Juízo", "Vara"...) → direto;
                  depois a genérica
    valor/página  JZ exige a 1ª página do despacho e DE a 2ª; candidato
                  de outra página é descartado
    assinante     sempre a passada direta
"""

from __future__ import annotations

from typing import Callable, Optional

from extrator_despacho.modelos import Campo, nao_encontrado
from extrator_despacho.texto import eh_valor_institucional

# (semente, direto, página exigida) → bool / Campo
Predicado = Callable[[Optional[Campo], Campo, int], bool]
Regra = Callable[[Optional[Campo], Campo, int], Campo]


def _tem(c: Optional[Campo]) -> bool:
    return c is not None and c.encontrado


def _semente(s: Optional[Campo], d: Campo, pagina: int) -> Campo:
    return s


def _direto(s: Optional[Campo], d: Campo, pagina: int) -> Campo:
    return d


def _ausente(s: Optional[Campo], d: Campo, pagina: int) -> Campo:
    return nao_encontrado()


def _sempre(s: Optional[Campo], d: Campo, pagina: int) -> bool:
    return True


def _semente_vence(s: Optional[Campo], d: Campo) -> bool:
    return not d.encontrado or s.confianca >= d.confianca


# ══════════════════════════════════════════════════════════════════════
# LISTAS DE REGRAS
# ══════════════════════════════════════════════════════════════════════

REGRAS_GENERICAS: list[tuple[Predicado, Regra]] = [
    (lambda s, d, pg: not _tem(s), _direto),
    (lambda s, d, pg: not d.encontrado, _semente),
    (lambda s, d, pg: s.confianca >= d.confianca, _semente),
    (_sempre, _direto),
]

REGRAS_PARTE: list[tuple[Predicado, Regra]] = [
    (lambda s, d, pg: _tem(s) and eh_valor_institucional(s.valor), _direto),
    *REGRAS_GENERICAS,
]

REGRAS_VALOR_POR_PAGINA: list[tuple[Predicado, Regra]] = [
    (lambda s, d, pg: _tem(s) and pg > 0 and s.pagina == pg and _semente_vence(s, d), _semente),
    (lambda s, d, pg: d.encontrado and pg > 0 and d.pagina == pg, _direto),
    (lambda s, d, pg: d.encontrado, _ausente),
    (_sempre, _direto),
]

REGRAS_ASSINANTE: list[tuple[Predicado, Regra]] = [
    (_sempre, _direto),
]

CAMPOS_PARTE = ("PROMOVENTE", "PROMOVIDO")


def regras_do_campo(campo: str, por_pagina: bool = False) -> list[tuple[Predicado, Regra]]:
    if campo == "ASSINANTE":
        return REGRAS_ASSINANTE
    if por_pagina:
        return REGRAS_VALOR_POR_PAGINA
    if campo in CAMPOS_PARTE:
        return REGRAS_PARTE
    return REGRAS_GENERICAS


def arbitrar(sementes: dict[str, Campo], campo: str, direto: Campo,
             pagina_exigida: Optional[int] = None) -> Campo:
    """
    Escolhe entre a semente do campo e o resultado direto. Com
    `pagina_exigida`, usa as regras de valor por página.
    """
    semente = sementes.get(campo)
    pagina = pagina_exigida or 0
    for predicado, regra in regras_do_campo(campo, pagina_exigida is not None):
        if predicado(semente, direto, pagina):
            return regra(semente, direto, pagina)
    return direto


def mesclar_sementes(base: dict[str, Campo], extra: dict[str, Campo]) -> dict[str, Campo]:
    """União das sementes; em conflito fica a de maior confiança (empate: base)."""
    saida = dict(base)
    for campo, info in extra.items():
        atual = saida.get(campo)
        if atual is None or info.confianca > atual.confianca:
            saida[campo] = info
    return saida
