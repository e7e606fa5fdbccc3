# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/campos.py — Extração dos campos de um despacho
# ══════════════════════════════════════════════════════════════════════
"""
Orquestra a extração de campos de um ContextoDespacho.

Fluxo:
    1. Semente   = templates de região ∪ estratégias YAML (maior confiança)
    2. Passadas diretas por campo (templates de parágrafo, regex rotuladas,
       faixas, regiões, nome do arquivo)
    3. Arbitragem semente × direto (arbitragem.py)
    4. Pós-validação (CNJ, CPF, nome do perito)
    5. Catálogo de peritos e tabela de honorários

Campos:
    PROCESSO_ADMINISTRATIVO  PROCESSO_JUDICIAL  VARA  COMARCA
    PROMOVENTE  PROMOVIDO  PERITO  CPF_PERITO  ESPECIALIDADE
    ESPECIE_DA_PERICIA  VALOR_ARBITRADO_JZ  VALOR_ARBITRADO_DE
    VALOR_ARBITRADO_CM  VALOR_TABELADO_ANEXO_I  ADIANTAMENTO
    PERCENTUAL  PARCELA  DATA  ASSINANTE  NUM_PERITO
"""

from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from typing import Iterable, Optional

from extrator_despacho.arbitragem import arbitrar, mesclar_sementes
from extrator_despacho.assinaturas import (
    RE_ASSINADO,
    RE_ASSINADO_COLAPSADO,
    RE_LINHA_DIRETOR,
    RE_PJE,
    escolher_assinante,
    parece_assinante,
    resolver_nome_assinante,
    tem_ancora_assinatura,
    tem_ancora_pje,
)
from extrator_despacho.catalogos import (
    aplicar_tabela_honorarios,
    carregar_catalogo_peritos,
    carregar_tabela_honorarios,
    enriquecer_com_catalogo,
)
from extrator_despacho.config import ConfigExtrator, compilar_padroes
from extrator_despacho.estrategias import MotorEstrategias
from extrator_despacho.evidencia import (
    campo_de_spans,
    campo_do_match,
    garantir,
    montar_campo,
    preparar_texto_casamento,
    spans_palavras,
    texto_colapsado_com_spans,
    trecho_do_match,
)
from extrator_despacho.modelos import Campo, ContextoDespacho, SegmentoBanda, nao_encontrado
from extrator_despacho.regioes import eh_regiao_base
from extrator_despacho.templates import (
    campo_do_candidato,
    extrair_de_paragrafos,
    extrair_de_regioes,
    mesclar_templates,
    templates_de_rotulos,
)
from extrator_despacho.texto import (
    colapsar_letras_espacadas,
    contem_algum,
    cortar_em_palavras,
    eh_valor_institucional,
    formatar_data_br,
    limpar_nome_parte,
    limpar_nome_pessoa,
    normalizar_cpf,
    normalizar_espacos,
    normalizar_para_busca,
    parse_data,
    parece_nome_parte,
)
from extrator_despacho.valores import extrair_extras, extrair_valores

log = logging.getLogger("extrator_despacho")

CAMPOS = (
    "PROCESSO_ADMINISTRATIVO", "PROCESSO_JUDICIAL", "VARA", "COMARCA",
    "PROMOVENTE", "PROMOVIDO", "PERITO", "CPF_PERITO", "ESPECIALIDADE",
    "ESPECIE_DA_PERICIA", "VALOR_ARBITRADO_JZ", "VALOR_ARBITRADO_DE",
    "VALOR_ARBITRADO_CM", "VALOR_TABELADO_ANEXO_I", "ADIANTAMENTO",
    "PERCENTUAL", "PARCELA", "DATA", "ASSINANTE", "NUM_PERITO",
)


# ══════════════════════════════════════════════════════════════════════
# PADRÕES
# ══════════════════════════════════════════════════════════════════════

_VOGAIS = {"a": "[aáàâã]", "e": "[eéê]", "i": "[ií]", "o": "[oóôõ]", "u": "[uúü]", "c": "[cç]"}


def _t(palavra: str) -> str:
    """Padrão que aceita letras espaçadas ("m o v i d o") e acentos."""
    return r"\s*".join(_VOGAIS.get(c, re.escape(c)) for c in palavra.lower())


def _frase(texto: str) -> str:
    return r"\s+".join(_t(p) for p in texto.split())


def _rotulos(rotulos: Iterable[str]) -> str:
    return "|".join(_frase(r) for r in rotulos if r and r.strip())


_FIM_AUTOR = "|".join([
    _frase("em face") + r"\s+" + _t("d") + r"\s*[eoa]",
    _frase("em desfavor de"),
    _t("contra"),
    _t("perante"),
    _t("juizo"),
])
_FIM_REU = "|".join([_t("perante"), _t("juizo")])

RE_AUTOR = re.compile(
    _t("movid") + r"\s*[oa]\s+" + _t("por") + r"\s*:?\s*(.+?)"
    r"(?=\s*,?\s*(?:" + _FIM_AUTOR + r")\b|\s*[.;\n]|$)",
    re.IGNORECASE,
)
RE_REU = re.compile(
    r"(?:" + _frase("em face") + r"\s+" + _t("d") + r"\s*[eoa]|" + _frase("em desfavor de") + "|"
    + r"\b" + _t("contra") + r")\s+(.+?)"
    r"(?=\s*(?:,|\n|\.|;)|\s+(?:" + _FIM_REU + r")\b|$)",
    re.IGNORECASE,
)
_RE_EM_FACE = re.compile(r"em\s+face\s+d[eoa]\s+(.+?)(?:,|\n|$)", re.IGNORECASE)

_RE_CNJ_SOLTO = re.compile(r"\d{7}\s*-\s*\d{2}\s*\.\s*\d{4}\s*\.\s*\d\s*\.\s*\d{2}\s*\.\s*\d{4}")
_RE_ROTULO_FAIXA_PROCESSO = re.compile(r"\b(?:processo|sei|adme|ci)\b")

_RE_VARA = re.compile(r"\bvara\b\s*[:\-]?\s*([^\n;]+)", re.IGNORECASE)
_RE_COMARCA = re.compile(r"\bcomarca\b\s*[:\-]?\s*([^\n;]+)", re.IGNORECASE)

_RE_INTERESSADO = re.compile(r"\binteressad[oa]\b\s*[:\-]?\s*([^\n;]+)", re.IGNORECASE)
_RE_CPF_ROTULO = re.compile(r"cpf\s*[:\-]?\s*(\d{3}\.\d{3}\.\d{3}-\d{2})", re.IGNORECASE)
_RE_ESPECIALIDADE = re.compile(r"\bperit[oa]\s*(?:-\s*|em\s+)([^\n;,]+)", re.IGNORECASE)
_RE_ESPECIE = re.compile(r"\bper[ií]cia\s+([^\W\d_]+)", re.IGNORECASE)
_RE_DATA_ASSINATURA = re.compile(r"(\d{1,2}\s+de\s+[^\W\d_]+\s+de\s+\d{4})", re.IGNORECASE)

_RE_NUM_PERITO = (
    (re.compile(r"\b(matr[ií]cula|cadastro|n[uú]mero\s+do\s+perito|num\.\s*perito)\s*[:\-]?\s*(\d{3,})",
                re.IGNORECASE), 2, 0.55),
    (re.compile(r"inscri[cç][aã]o\s*no\s*inss.{0,80}?n[ºo°]\s*\.?\s*(\d{6,})", re.IGNORECASE | re.DOTALL), 1, 0.5),
    (re.compile(r"pis\s*/?\s*pasep.{0,80}?n[ºo°]\s*\.?\s*(\d{6,})", re.IGNORECASE | re.DOTALL), 1, 0.5),
)

_ESPECIES_FRACAS = {"nos", "no", "na", "dos", "das", "do", "da", "em", "de", "autos"}

_ESPECIE_POR_ESPECIALIDADE = (
    ("medic", "medica"),
    ("grafotec", "grafotecnica"),
    ("contab", "contabil"),
    ("engenh", "engenharia"),
    ("psicol", "psicologica"),
    ("odontol", "odontologica"),
    ("psiquiatr", "psiquiatrica"),
    ("fonoaud", "fonoaudiologica"),
    ("fisioter", "fisioterapica"),
    ("informat", "informatica"),
    ("ambient", "ambiental"),
    ("arquitet", "arquitetonica"),
)


def data_recente(iso: Optional[str], hoje: Optional[date] = None) -> bool:
    """Até 5 anos para trás, no máximo amanhã."""
    if not iso:
        return False
    try:
        d = date.fromisoformat(iso)
    except ValueError:
        return False
    hoje = hoje or date.today()
    limite = date(hoje.year - 5, hoje.month, min(hoje.day, 28))
    return limite <= d <= hoje + timedelta(days=1)


def _limpar_perito(bruto: str) -> str:
    return limpar_nome_pessoa(cortar_em_palavras(bruto, ("CPF", "CNPJ", "especialidade", ",")))


# ══════════════════════════════════════════════════════════════════════
# EXTRATOR
# ══════════════════════════════════════════════════════════════════════

class ExtratorCampos:
    """Extrai os campos de um despacho; instanciado uma vez por configuração."""

    def __init__(self, config: ConfigExtrator):
        self.config = config
        self.padroes = compilar_padroes(config.regex)
        self.estrategias = MotorEstrategias(config) if config.estrategias.habilitado else None
        self.catalogo = carregar_catalogo_peritos(config)
        self.tabela = carregar_tabela_honorarios(config)

    # ── orquestração ──────────────────────────────────────────────────

    def sementes(self, ctx: ContextoDespacho) -> dict[str, Campo]:
        sementes = extrair_de_regioes(ctx.regioes, self.config, self.padroes)
        if self.estrategias is not None:
            sementes = mesclar_sementes(sementes, self.estrategias.extrair(ctx))
        return sementes

    def extrair_todos(self, ctx: ContextoDespacho) -> dict[str, Campo]:
        s = self.sementes(ctx)
        campos: dict[str, Campo] = {}

        campos["PROCESSO_ADMINISTRATIVO"] = arbitrar(s, "PROCESSO_ADMINISTRATIVO", self.processo_administrativo(ctx))
        campos["PROCESSO_JUDICIAL"] = arbitrar(s, "PROCESSO_JUDICIAL", self.processo_judicial(ctx))

        vara, comarca = self.vara_comarca(ctx)
        campos["VARA"] = arbitrar(s, "VARA", vara)
        campos["COMARCA"] = arbitrar(s, "COMARCA", comarca)

        promovente, promovido = self.partes(ctx)
        campos["PROMOVENTE"] = arbitrar(s, "PROMOVENTE", promovente)
        campos["PROMOVIDO"] = arbitrar(s, "PROMOVIDO", promovido)

        campos["PERITO"] = arbitrar(s, "PERITO", self.perito(ctx))
        campos["CPF_PERITO"] = arbitrar(s, "CPF_PERITO", self.cpf_perito(ctx))
        campos["ESPECIALIDADE"] = arbitrar(s, "ESPECIALIDADE", self.especialidade(ctx))
        campos["ESPECIE_DA_PERICIA"] = arbitrar(
            s, "ESPECIE_DA_PERICIA", self.especie(ctx, campos["ESPECIALIDADE"]))

        valores = extrair_valores(ctx, self.config)
        campos["VALOR_ARBITRADO_JZ"] = arbitrar(s, "VALOR_ARBITRADO_JZ", valores.jz, ctx.pagina_inicio)
        campos["VALOR_ARBITRADO_DE"] = arbitrar(s, "VALOR_ARBITRADO_DE", valores.de, ctx.pagina_inicio + 1)
        campos["VALOR_ARBITRADO_CM"] = arbitrar(s, "VALOR_ARBITRADO_CM", valores.cm)
        campos["VALOR_TABELADO_ANEXO_I"] = arbitrar(s, "VALOR_TABELADO_ANEXO_I", valores.tabela)

        adiantamento, percentual, parcela = extrair_extras(ctx, self.config)
        campos["ADIANTAMENTO"] = arbitrar(s, "ADIANTAMENTO", adiantamento)
        campos["PERCENTUAL"] = arbitrar(s, "PERCENTUAL", percentual)
        campos["PARCELA"] = arbitrar(s, "PARCELA", parcela)
        campos["DATA"] = arbitrar(s, "DATA", self.data(ctx))
        campos["ASSINANTE"] = arbitrar(s, "ASSINANTE", self.assinante(ctx))
        campos["NUM_PERITO"] = arbitrar(s, "NUM_PERITO", self.num_perito(ctx))

        for nome in CAMPOS:
            campos[nome] = garantir(campos.get(nome))

        self.pos_validar(campos)
        enriquecer_com_catalogo(campos, self.catalogo)
        aplicar_tabela_honorarios(campos, self.tabela, self.config.referencia.honorarios)
        return campos

    def pos_validar(self, campos: dict[str, Campo]) -> None:
        jud = campos.get("PROCESSO_JUDICIAL")
        if jud is not None and jud.encontrado:
            m = self.padroes.cnj.search(re.sub(r"\s+", "", jud.valor))
            if m:
                jud.valor = m.group(0)
            else:
                campos["PROCESSO_JUDICIAL"] = nao_encontrado()

        cpf = campos.get("CPF_PERITO")
        if cpf is not None and cpf.encontrado:
            digitos = normalizar_cpf(cpf.valor)
            if len(digitos) == 11:
                cpf.valor = digitos
            else:
                campos["CPF_PERITO"] = nao_encontrado()

        perito = campos.get("PERITO")
        if perito is not None and perito.encontrado:
            limpo = limpar_nome_pessoa(perito.valor)
            if len(limpo) >= 4:
                perito.valor = limpo
            else:
                campos["PERITO"] = nao_encontrado()

    # ── processos ─────────────────────────────────────────────────────

    def processo_administrativo(self, ctx: ContextoDespacho) -> Campo:
        rotulos = self.config.prioridades.rotulos_processo_admin
        templates = mesclar_templates(
            self.config.campo("PROCESSO_ADMINISTRATIVO").templates, templates_de_rotulos(rotulos))
        for padrao in (self.padroes.sei, self.padroes.adme):
            c = extrair_de_paragrafos(ctx.paragrafos[:8], templates, padrao)
            if c is not None:
                return campo_do_candidato(c, 0.90, "template_dmp")

        for p in ctx.paragrafos[:12]:
            if not contem_algum(normalizar_para_busca(p.texto), rotulos):
                continue
            m = self.padroes.sei.search(p.texto or "")
            if m:
                return campo_do_match(m.group(0), 0.75, "regex", p, m)
            m = self.padroes.adme.search(p.texto or "")
            if m:
                return campo_do_match(m.group(0), 0.7, "regex", p, m)

        for seg in ctx.segmentos:
            if not _RE_ROTULO_FAIXA_PROCESSO.search(normalizar_para_busca(seg.texto)):
                continue
            for padrao, conf in ((self.padroes.sei, 0.7), (self.padroes.adme, 0.65)):
                m = padrao.search(seg.texto or "")
                if m:
                    return campo_do_match(m.group(0), conf, f"regex_band:{seg.banda}", seg, m)

        for padrao in (self.padroes.sei, self.padroes.adme):
            m = padrao.search(ctx.nome_arquivo or "")
            if m:
                return montar_campo(m.group(0), 0.35, "filename_fallback", m.group(0))
        return nao_encontrado()

    def processo_judicial(self, ctx: ContextoDespacho) -> Campo:
        cnj = self.padroes.cnj
        templates = mesclar_templates(
            self.config.campo("PROCESSO_JUDICIAL").templates, ["Processo Judicial: {{value}}"])
        c = extrair_de_paragrafos(ctx.paragrafos[:10], templates, cnj)
        if c is not None:
            return campo_do_candidato(c, 0.85, "template_dmp")

        corpo = next((s for s in ctx.segmentos if s.pagina == ctx.pagina_inicio and s.banda == "body"), None)
        if corpo is not None and corpo.palavras:
            colapsado, spans = texto_colapsado_com_spans(corpo.palavras)
            m = cnj.search(colapsado) or _RE_CNJ_SOLTO.search(colapsado)
            if m:
                return campo_de_spans(re.sub(r"\s+", "", m.group(0)), 0.75, "regex_band:body",
                                      colapsado, m.start(), m.end() - m.start(), spans, corpo.pagina)

        melhor, melhor_conf = None, 0.0
        for p in ctx.paragrafos:
            colapsado, spans = texto_colapsado_com_spans(p.palavras)
            if not colapsado:
                colapsado, spans = colapsar_letras_espacadas(p.texto), []
            m = cnj.search(colapsado) or _RE_CNJ_SOLTO.search(colapsado)
            if not m:
                continue
            norm = normalizar_para_busca(p.texto)
            conf = 0.6
            if "vara" in norm or "comarca" in norm or "processo judicial" in norm:
                conf += 0.2
            if conf > melhor_conf:
                melhor_conf = conf
                melhor = campo_de_spans(re.sub(r"\s+", "", m.group(0)), conf, "regex",
                                        colapsado, m.start(), m.end() - m.start(), spans, p.pagina)
        if melhor is not None:
            return melhor

        for r in ctx.regioes:
            if not eh_regiao_base(r.nome):
                continue
            norm = normalizar_para_busca(r.texto)
            if "processo" not in norm and "autos" not in norm:
                continue
            colapsado, spans = texto_colapsado_com_spans(r.palavras)
            m = cnj.search(colapsado) or _RE_CNJ_SOLTO.search(colapsado)
            if m:
                return campo_de_spans(re.sub(r"\s+", "", m.group(0)), 0.72, "regex_region",
                                      colapsado, m.start(), m.end() - m.start(), spans, r.pagina)

        m = cnj.search(ctx.nome_arquivo or "")
        if m:
            return montar_campo(m.group(0), 0.35, "filename_fallback", m.group(0))
        return nao_encontrado()

    # ── vara / comarca ────────────────────────────────────────────────

    def vara_comarca(self, ctx: ContextoDespacho) -> tuple[Campo, Campo]:
        prio = self.config.prioridades
        vara = comarca = nao_encontrado()
        for p in ctx.paragrafos[:15]:
            norm = normalizar_para_busca(p.texto)
            texto = p.texto or ""
            if not vara.encontrado and contem_algum(norm, prio.rotulos_vara):
                m = _RE_VARA.search(texto)
                if m and m.group(1).strip():
                    vara = campo_do_match(m.group(1).strip().rstrip(".,-"), 0.7, "regex", p, m, 1)
            if not comarca.encontrado and contem_algum(norm, prio.rotulos_comarca):
                m = _RE_COMARCA.search(texto)
                if m and m.group(1).strip():
                    comarca = campo_do_match(m.group(1).strip().rstrip(".,-"), 0.7, "regex", p, m, 1)
            if vara.encontrado and comarca.encontrado:
                break
        return vara, comarca

    # ── partes ────────────────────────────────────────────────────────

    def partes(self, ctx: ContextoDespacho) -> tuple[Campo, Campo]:
        promovente = promovido = nao_encontrado()

        for p in ctx.paragrafos:
            ordenadas, texto = preparar_texto_casamento(p.palavras)
            if not texto:
                continue
            spans = spans_palavras(ordenadas)
            if not promovente.encontrado:
                promovente = self._parte_por_spans(RE_AUTOR, texto, spans, p.pagina, 0.7, "regex")
            if not promovido.encontrado:
                promovido = self._parte_por_spans(RE_REU, texto, spans, p.pagina, 0.7, "regex")
            if promovente.encontrado and promovido.encontrado:
                return promovente, promovido

        prio = self.config.prioridades
        rx_autor = re.compile(r"\b(?:" + _rotulos(prio.rotulos_promovente) + r")\b\s*[:\-]?\s*([^\n;]+)",
                              re.IGNORECASE)
        rx_reu = re.compile(r"\b(?:" + _rotulos(prio.rotulos_promovido) + r")\b\s*[:\-]?\s*([^\n;]+)",
                            re.IGNORECASE)
        for p in ctx.paragrafos:
            if not promovente.encontrado:
                promovente = self._parte_por_match(rx_autor, p, 0.65, "regex")
            if not promovido.encontrado:
                promovido = self._parte_por_match(rx_reu, p, 0.65, "regex")

        for r in ctx.regioes:
            if not eh_regiao_base(r.nome):
                continue
            if not promovente.encontrado:
                promovente = self._parte_por_match(RE_AUTOR, r, 0.7, "regex_region")
            if not promovido.encontrado:
                promovido = self._parte_por_match(RE_REU, r, 0.7, "regex_region")
            if not promovido.encontrado:
                promovido = self._parte_por_match(_RE_EM_FACE, r, 0.65, "regex_region")

        for seg in ctx.segmentos:
            if seg.banda not in ("body", "footer"):
                continue
            if not promovente.encontrado:
                promovente = self._parte_por_match(RE_AUTOR, seg, 0.65, "regex_band")
            if not promovido.encontrado:
                promovido = self._parte_por_match(RE_REU, seg, 0.65, "regex_band")
        return promovente, promovido

    @staticmethod
    def _parte_por_spans(rx, texto, spans, pagina, conf, metodo) -> Campo:
        m = rx.search(texto)
        if not m:
            return nao_encontrado()
        valor = limpar_nome_parte(m.group(1))
        if not parece_nome_parte(valor) or eh_valor_institucional(valor):
            return nao_encontrado()
        return campo_de_spans(valor, conf, metodo, texto, m.start(1), m.end(1) - m.start(1), spans, pagina)

    @staticmethod
    def _parte_por_match(rx, alvo, conf, metodo) -> Campo:
        texto = alvo.texto or ""
        for m in rx.finditer(texto):
            valor = limpar_nome_parte(m.group(1))
            if parece_nome_parte(valor) and not eh_valor_institucional(valor):
                return campo_do_match(valor, conf, metodo, alvo, m, 1)
        return nao_encontrado()

    # ── perito ────────────────────────────────────────────────────────

    def perito(self, ctx: ContextoDespacho) -> Campo:
        rotulos = self.config.prioridades.rotulos_perito
        templates = mesclar_templates(self.config.campo("PERITO").templates, ["Interessado: {{value}}"])
        resultado = nao_encontrado()
        c = extrair_de_paragrafos(ctx.paragrafos, templates, _RE_INTERESSADO)
        if c is not None:
            valor = _limpar_perito(c.valor)
            if valor:
                c.valor = valor
                resultado = campo_do_candidato(c, 0.75, "template_dmp")

        rx_rotulo = re.compile(r"\b(?:" + _rotulos(rotulos) + r")\b\s*:\s*([^\n;]+)", re.IGNORECASE)
        for p in ctx.paragrafos:
            m = _RE_INTERESSADO.search(p.texto or "") or rx_rotulo.search(p.texto or "")
            if not m:
                continue
            valor = _limpar_perito(m.group(1))
            if valor:
                return campo_do_match(valor, 0.75, "regex", p, m, 1)
        return resultado

    def cpf_perito(self, ctx: ContextoDespacho) -> Campo:
        templates = mesclar_templates(self.config.campo("CPF_PERITO").templates, ["CPF: {{value}}"])
        resultado = nao_encontrado()
        c = extrair_de_paragrafos(ctx.paragrafos, templates, _RE_CPF_ROTULO)
        if c is not None:
            c.valor = normalizar_cpf(c.valor)
            resultado = campo_do_candidato(c, 0.75, "template_dmp")

        for p in ctx.paragrafos:
            m = self.padroes.cpf.search(p.texto or "")
            if m:
                return campo_do_match(normalizar_cpf(m.group(0)), 0.75, "regex", p, m)
        return resultado

    def especialidade(self, ctx: ContextoDespacho) -> Campo:
        templates = mesclar_templates(
            self.config.campo("ESPECIALIDADE").templates, ["Perito em {{value}}", "Perito - {{value}}"])
        resultado = nao_encontrado()
        c = extrair_de_paragrafos(ctx.paragrafos, templates, _RE_ESPECIALIDADE)
        if c is not None and c.valor.strip():
            c.valor = normalizar_espacos(c.valor)
            resultado = campo_do_candidato(c, 0.7, "template_dmp")

        for p in ctx.paragrafos:
            m = _RE_ESPECIALIDADE.search(p.texto or "")
            if m and m.group(1).strip():
                return campo_do_match(normalizar_espacos(m.group(1)), 0.7, "regex", p, m, 1)
        return resultado

    def especie(self, ctx: ContextoDespacho, especialidade: Campo) -> Campo:
        for p in ctx.paragrafos:
            for m in _RE_ESPECIE.finditer(p.texto or ""):
                if normalizar_para_busca(m.group(1)) in _ESPECIES_FRACAS:
                    continue
                return campo_do_match(m.group(1), 0.7, "regex", p, m, 1)

        if especialidade.encontrado:
            norm = normalizar_para_busca(especialidade.valor)
            for raiz, especie in _ESPECIE_POR_ESPECIALIDADE:
                if raiz in norm:
                    return montar_campo(especie, 0.55, "heuristic", especialidade.valor)
        return nao_encontrado()

    def num_perito(self, ctx: ContextoDespacho) -> Campo:
        for p in ctx.paragrafos:
            for rx, grupo, conf in _RE_NUM_PERITO:
                m = rx.search(p.texto or "")
                if m:
                    return campo_do_match(m.group(grupo), conf, "regex", p, m, grupo)
        return nao_encontrado()

    # ── data ──────────────────────────────────────────────────────────

    def data(self, ctx: ContextoDespacho) -> Campo:
        templates = mesclar_templates(
            self.config.campo("DATA").templates, ["Documento assinado eletronicamente em {{value}}"])
        c = extrair_de_paragrafos(ctx.paragrafos, templates, _RE_DATA_ASSINATURA)
        if c is not None:
            iso = parse_data(c.valor)
            if data_recente(iso):
                c.valor = formatar_data_br(iso)
                return campo_do_candidato(c, 0.75, "template_dmp")

        for seg in ctx.segmentos:
            if seg.banda != "footer":
                continue
            for m in self.padroes.data_extenso.finditer(seg.texto or ""):
                iso = parse_data(m.group(0))
                if data_recente(iso):
                    return campo_do_match(formatar_data_br(iso), 0.8, "regex", seg, m, trecho=m.group(0))
        return nao_encontrado()

    # ── assinante ─────────────────────────────────────────────────────

    def _nome(self, ctx: ContextoDespacho, bruto: Optional[str]) -> str:
        nome = resolver_nome_assinante(bruto, ctx.assinantes_rodape)
        return nome if parece_assinante(nome) else ""

    def _assinante_no_texto(self, ctx, alvo, texto: str, rx, conf: float, metodo: str,
                            bbox_do_match: bool) -> Optional[Campo]:
        m = rx.search(texto)
        if not m:
            return None
        nome = self._nome(ctx, m.group("name"))
        if not nome:
            return None
        if bbox_do_match:
            return campo_do_match(nome, conf, metodo, alvo, m, "name")
        return montar_campo(nome, conf, metodo, trecho_do_match(texto, m), alvo.pagina, alvo.bbox)

    def _variantes_colapsadas(self, ctx, alvo, confs: tuple[float, float], metodo: str) -> Optional[Campo]:
        texto = alvo.texto or ""
        colapsado = colapsar_letras_espacadas(texto)
        if colapsado == texto:
            return None
        justo = re.sub(r"\s+", "", colapsado)
        return (self._assinante_no_texto(ctx, alvo, colapsado, RE_ASSINADO, confs[0], metodo, False)
                or self._assinante_no_texto(ctx, alvo, justo, RE_ASSINADO_COLAPSADO, confs[1], metodo, False))

    def assinante(self, ctx: ContextoDespacho) -> Campo:
        """Primeira passada que encontra um nome plausível vence."""
        rodapes = [s for s in ctx.segmentos if s.banda == "footer"]

        for seg in rodapes:
            if not tem_ancora_assinatura(seg.texto):
                continue
            achado = (self._assinante_no_texto(ctx, seg, seg.texto, RE_ASSINADO, 0.82, "footer", True)
                      or self._variantes_colapsadas(ctx, seg, (0.72, 0.7), "footer:collapsed"))
            if achado is None and tem_ancora_pje(seg.texto):
                achado = self._assinante_no_texto(ctx, seg, seg.texto, RE_PJE, 0.7, "footer:pje", False)
            if achado is not None:
                return achado

        for r in ctx.regioes:
            if not eh_regiao_base(r.nome) or not tem_ancora_assinatura(r.texto):
                continue
            achado = self._assinante_no_texto(ctx, r, r.texto, RE_ASSINADO, 0.85, "regex_region", True)
            if achado is None and tem_ancora_pje(r.texto):
                achado = self._assinante_no_texto(ctx, r, r.texto, RE_PJE, 0.78, "regex_region:pje", True)
            if achado is None:
                achado = self._variantes_colapsadas(ctx, r, (0.78, 0.76), "regex_region:collapsed")
            if achado is None and tem_ancora_pje(r.texto):
                colapsado = colapsar_letras_espacadas(r.texto)
                achado = self._assinante_no_texto(ctx, r, colapsado, RE_PJE, 0.74, "regex_region:collapsed", False)
            if achado is not None:
                return achado

        for p in ctx.paragrafos:
            if not tem_ancora_assinatura(p.texto):
                continue
            achado = (self._assinante_no_texto(ctx, p, p.texto, RE_ASSINADO, 0.8, "regex_paragraph", True)
                      or self._variantes_colapsadas(ctx, p, (0.78, 0.76), "regex_paragraph:collapsed"))
            if achado is None and tem_ancora_pje(p.texto):
                achado = self._assinante_no_texto(ctx, p, p.texto, RE_PJE, 0.75, "regex_paragraph:pje", True)
            if achado is not None:
                return achado

        achado = self._assinante_diretor(ctx, rodapes)
        if achado is not None:
            return achado
        achado = self._assinante_rodape_conhecido(ctx, rodapes)
        if achado is not None:
            return achado
        return self._assinante_digital(ctx)

    def _rodape_final(self, ctx: ContextoDespacho, rodapes: list[SegmentoBanda]) -> Optional[SegmentoBanda]:
        return next((s for s in rodapes if s.pagina == ctx.pagina_fim), rodapes[0] if rodapes else None)

    def _assinante_diretor(self, ctx, rodapes) -> Optional[Campo]:
        for r in ctx.regioes:
            if not r.nome.startswith("last_bottom"):
                continue
            achado = self._assinante_no_texto(ctx, r, r.texto, RE_LINHA_DIRETOR, 0.82, "director_line", True)
            if achado is not None:
                return achado

        texto = ctx.texto_da_pagina(ctx.pagina_fim)
        m = RE_LINHA_DIRETOR.search(texto)
        if m:
            nome = self._nome(ctx, m.group("name"))
            if nome:
                rodape = next((s for s in rodapes if s.pagina == ctx.pagina_fim), None)
                return montar_campo(nome, 0.8, "director_line", trecho_do_match(texto, m),
                                    ctx.pagina_fim, rodape.bbox if rodape else None)
        return None

    def _assinante_rodape_conhecido(self, ctx, rodapes) -> Optional[Campo]:
        nome, metodo, trecho = "", "", ""
        escolhido = escolher_assinante(list(ctx.assinantes_rodape), self.config.ancoras.dicas_assinante)
        if escolhido:
            nome, metodo, trecho = self._nome(ctx, escolhido), "footer_signers", "footer_signers"
        if not nome and ctx.assinatura_rodape_bruta:
            bruto = ctx.assinatura_rodape_bruta
            m = RE_ASSINADO.search(bruto) or RE_PJE.search(bruto)
            nome = self._nome(ctx, m.group("name") if m else bruto)
            metodo, trecho = "footer_raw", bruto[:160]
        if not nome:
            return None
        rodape = self._rodape_final(ctx, rodapes)
        if rodape is None:
            return montar_campo(nome, 0.72, metodo, trecho)
        return montar_campo(nome, 0.72, metodo, trecho, rodape.pagina, rodape.bbox)

    def _assinante_digital(self, ctx: ContextoDespacho) -> Campo:
        for a in reversed(ctx.assinaturas):
            if not a.assinante or not a.assinante.strip():
                continue
            nome = resolver_nome_assinante(a.assinante, ctx.assinantes_rodape) or a.assinante
            pagina = a.pagina if a.pagina > 0 else None
            return montar_campo(nome, 0.9, "digital_signature", a.campo or "signature", pagina, a.bbox)
        return nao_encontrado()


def contexto_tem_processos(campos: dict[str, Campo]) -> bool:
    return any(campos.get(n) is not None and campos[n].encontrado
               for n in ("PROCESSO_ADMINISTRATIVO", "PROCESSO_JUDICIAL"))
