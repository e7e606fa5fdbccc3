# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/extrator.py — Orquestração da extração de um PDF
# ══════════════════════════════════════════════════════════════════════
"""
Ponto de entrada da extração.

    extrair_pdf(caminho)         lê o PDF (leitor_pdf) e extrai
    extrair_despacho(dados)      extrai a partir dos registros já lidos

Etapas:
    1. Marcadores + janelas candidatas pontuadas (janelas.py)
    2. Intervalo final; intervalo curto demais → range_below_min_pages
    3. Regiões do despacho e localização da certidão (regioes.py, certidao.py)
    4. Documento "despacho": faixas, parágrafos e campos (campos.py)
    5. Documento "certidao_cm" (só CM, ADIANTAMENTO, PERCENTUAL, PARCELA, DATA)
    6. Trechos de variação de redação (autorização / conselho) no log

Falhas estruturais viram códigos em `erros`, nunca exceção.
"""

from __future__ import annotations

import hashlib
import logging
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Iterable, Optional

from extrator_despacho.assinaturas import extrair_assinaturas_digitais, extrair_assinaturas_texto, mesclar_assinaturas
from extrator_despacho.campos import ExtratorCampos, contexto_tem_processos
from extrator_despacho.certidao import localizar_certidao, montar_regioes_certidao
from extrator_despacho.config import ConfigExtrator, OpcoesExtracao, compilar_padroes
from extrator_despacho.leitor_pdf import ler_pdf
from extrator_despacho.janelas import achatar_marcadores, intervalo_final, melhor_candidata, pontuar_candidatas
from extrator_despacho.modelos import (
    Assinatura,
    Banda,
    Campo,
    ContextoDespacho,
    DadosPdf,
    DocumentoDespacho,
    InfoExecucao,
    InfoPdf,
    Palavra,
    Paragrafo,
    Regiao,
    ResultadoExtracao,
    SegmentoBanda,
    TextoPagina,
    nao_encontrado,
)
from extrator_despacho.regioes import montar_regioes_despacho
from extrator_despacho.registro import CallbackLog, RegistroExecucao, agora_iso
from extrator_despacho.segmentacao import montar_linhas, montar_paragrafos, montar_texto_palavras, segmentar_pagina
from extrator_despacho.templates import CAMPOS_CERTIDAO
from extrator_despacho.texto import (
    colapsar_letras_espacadas,
    contem_algum,
    normalizar_espacos,
    normalizar_para_busca,
    normalizar_para_hash,
    sha256_hex,
    unir_bbox,
)

log = logging.getLogger("extrator_despacho")

TIPO_DESPACHO = "despacho"
TIPO_CERTIDAO = "certidao_cm"

_FERRAMENTAS = ("pdfplumber", "PyMuPDF", "rapidfuzz", "pydantic", "pandas", "PyYAML")
_JANELA_VARIACAO = 220
_LIMITE_TEXTO_REGIAO = 2000


# ══════════════════════════════════════════════════════════════════════
# METADADOS
# ══════════════════════════════════════════════════════════════════════

def sha256_arquivo(caminho: str | Path | None) -> str:
    """Hash do arquivo; vazio se não existir ou não puder ser lido."""
    if not caminho:
        return ""
    p = Path(caminho)
    if not p.is_file():
        return ""
    h = hashlib.sha256()
    try:
        with p.open("rb") as f:
            for bloco in iter(lambda: f.read(1 << 16), b""):
                h.update(bloco)
    except OSError as e:
        log.warning("[EXTRACAO] Falha ao calcular hash de %s: %s", p, e)
        return ""
    return h.hexdigest()


def versoes_ferramentas() -> dict[str, str]:
    versoes = {}
    for nome in _FERRAMENTAS:
        try:
            versoes[nome] = version(nome)
        except PackageNotFoundError:
            versoes[nome] = ""
    return versoes


# ══════════════════════════════════════════════════════════════════════
# DOCUMENTO
# ══════════════════════════════════════════════════════════════════════

def _paragrafo_por_dicas(paragrafos: list[Paragrafo], dicas: Iterable[str],
                         padrao=None) -> Optional[Paragrafo]:
    """Primeiro parágrafo que casa o padrão; senão o primeiro com alguma dica."""
    if not paragrafos:
        return None
    dicas = [d for d in dicas if d and d.strip()]
    if not dicas:
        return None
    if padrao is not None:
        for p in paragrafos:
            bruto = p.texto or ""
            if padrao.search(colapsar_letras_espacadas(bruto)) or padrao.search(bruto):
                return p
    for p in paragrafos:
        if contem_algum(normalizar_para_busca(colapsar_letras_espacadas(p.texto)), dicas):
            return p
    return None


class _MontadorDocumento:
    """Acumula faixas, segmentos e parágrafos (sem repetição) de um intervalo."""

    def __init__(self, config: ConfigExtrator):
        self.config = config
        self.bandas: list[Banda] = []
        self.segmentos: list[SegmentoBanda] = []
        self.paragrafos: list[Paragrafo] = []
        self._chaves: set[str] = set()

    def adicionar_paragrafo(self, p: Optional[Paragrafo]):
        if p is None or not (p.texto or "").strip():
            return
        chave = f"{p.pagina}:{normalizar_espacos(p.texto).lower()}"
        if chave in self._chaves:
            return
        self._chaves.add(chave)
        self.paragrafos.append(p)

    def adicionar_corpo(self, pagina: int, palavras: list[Palavra]):
        """Faixa "body" extra a partir de um conjunto de palavras (região ou corpo)."""
        if not palavras:
            return
        texto = montar_texto_palavras(
            palavras, self.config.segmentacao.juncao_linha_y, self.config.regioes_template.intervalo_palavra_x)
        bbox = unir_bbox(palavras)
        self.bandas.append(Banda(
            pagina=pagina, banda="body", texto=texto,
            hash_sha256=sha256_hex(normalizar_para_hash(texto)), bbox=bbox,
        ))
        self.segmentos.append(SegmentoBanda(pagina=pagina, banda="body", texto=texto, palavras=palavras, bbox=bbox))

    def paragrafos_de(self, palavras: list[Palavra], pagina: int) -> list[Paragrafo]:
        seg = self.config.segmentacao
        linhas = montar_linhas(palavras, seg.juncao_linha_y, seg.intervalo_palavra_x)
        return montar_paragrafos(linhas, pagina, seg.intervalo_paragrafo_y)


def _palavras_regioes(regioes: list[Regiao], pagina: int, nomes) -> list[Palavra]:
    return [w for r in regioes if r.pagina == pagina and nomes(r.nome) for w in r.palavras]


def montar_documento(dados: DadosPdf, inicio: int, fim: int, score: float, regioes: list[Regiao],
                     opcoes: OpcoesExtracao, tipo: str, config: ConfigExtrator,
                     extrator_campos: ExtratorCampos,
                     campos_permitidos: Optional[Iterable[str]] = None,
                     avisos_processo: bool = True) -> DocumentoDespacho:
    doc = DocumentoDespacho(tipo=tipo, pagina_inicio=inicio, pagina_fim=fim, score=score)
    seg = config.segmentacao
    prio = config.prioridades
    montador = _MontadorDocumento(config)
    paginas: list[TextoPagina] = []

    segunda = inicio + 1
    paginas_extracao = {inicio, fim}
    if segunda <= fim:
        paginas_extracao.add(segunda)
    if fim - inicio >= 2:
        paginas_extracao.add(fim - 1)

    primeiro: Optional[Paragrafo] = None
    ultimo: Optional[Paragrafo] = None

    for numero in range(inicio, fim + 1):
        pagina = dados.pagina(numero)
        if pagina is None or numero not in paginas_extracao:
            continue
        paginas.append(TextoPagina(pagina=numero, texto=pagina.texto or ""))

        segmentada = segmentar_pagina(pagina.palavras, numero, config.faixas, seg.juncao_linha_y, seg.intervalo_palavra_x)
        montador.bandas.extend(b for b in segmentada.bandas if b.banda != "body")
        montador.segmentos.extend(s for s in segmentada.segmentos if s.banda != "body")

        corpo = next((s for s in segmentada.segmentos if s.banda == "body"), None)
        if corpo is not None and corpo.palavras:
            montador.adicionar_corpo(numero, corpo.palavras)
            for p in montador.paragrafos_de(corpo.palavras, numero):
                montador.adicionar_paragrafo(p)

        if numero == inicio:
            topo = _palavras_regioes(regioes, numero, lambda n: n == "first_top")
            if topo:
                montador.adicionar_corpo(numero, topo)
                paras = montador.paragrafos_de(topo, numero)
                dicas = [*prio.rotulos_processo_admin, *prio.rotulos_perito, *prio.rotulos_vara, *prio.rotulos_comarca]
                if primeiro is None:
                    primeiro = (_paragrafo_por_dicas(paras, dicas, compilar_padroes(config.regex).cnj)
                                or (paras[0] if paras else None))

        if numero == fim or (numero == fim - 1 and numero != segunda):
            base = _palavras_regioes(regioes, numero, lambda n: n.startswith("last_bottom"))
            if base:
                montador.adicionar_corpo(numero, base)
                paras = montador.paragrafos_de(base, numero)
                candidato = _paragrafo_por_dicas(paras, config.ancoras.rodape) or (paras[-1] if paras else None)
                if candidato is not None:
                    ultimo = candidato

        if numero == segunda:
            base = _palavras_regioes(
                regioes, numero, lambda n: n == "second_bottom" or n.startswith("last_bottom"))
            if base:
                montador.adicionar_corpo(numero, base)
                for p in montador.paragrafos_de(base, numero):
                    montador.adicionar_paragrafo(p)

    montador.adicionar_paragrafo(primeiro)
    montador.adicionar_paragrafo(ultimo)
    paragrafos = [p.model_copy(update={"indice": i}) for i, p in enumerate(montador.paragrafos)]

    doc.bandas = montador.bandas
    doc.paragrafos = paragrafos

    ctx = ContextoDespacho(
        texto_completo="\n".join(p.texto for p in paginas),
        paragrafos=paragrafos,
        bandas=montador.bandas,
        segmentos=montador.segmentos,
        regioes=regioes or [],
        paginas=paginas,
        assinaturas=extrair_assinaturas_digitais(dados.assinaturas),
        nome_arquivo=dados.nome_arquivo or Path(dados.caminho or "").name,
        caminho=dados.caminho or "",
        numero_processo=opcoes.numero_processo or "",
        assinantes_rodape=list(opcoes.assinantes_rodape),
        assinatura_rodape_bruta=opcoes.assinatura_rodape_bruta,
        pagina_inicio=inicio,
        pagina_fim=fim,
    )
    campos = extrator_campos.extrair_todos(ctx)
    if campos_permitidos is not None:
        campos = filtrar_campos(campos, campos_permitidos)
    doc.campos = campos

    if avisos_processo and not contexto_tem_processos(campos):
        doc.avisos.append("missing_process_numbers")
    return doc


def filtrar_campos(campos: dict[str, Campo], permitidos: Iterable[str]) -> dict[str, Campo]:
    """Só os campos permitidos; os ausentes entram como not_found com confiança 0."""
    saida = {}
    for nome in permitidos:
        info = campos.get(nome)
        saida[nome] = info if info is not None else nao_encontrado(0.0)
    return saida


# ══════════════════════════════════════════════════════════════════════
# LOG DE VARIAÇÕES
# ══════════════════════════════════════════════════════════════════════

def trechos_com_dicas(texto: str, dicas: Iterable[str], janela: int = _JANELA_VARIACAO) -> list[str]:
    """Trechos normalizados de `janela` caracteres centrados em cada dica, sem repetição."""
    trechos: list[str] = []
    norm = normalizar_para_busca(texto)
    if not norm:
        return trechos
    for dica in dicas:
        d = normalizar_para_busca(dica)
        if not d:
            continue
        idx = norm.find(d)
        if idx < 0:
            continue
        ini = max(0, idx - janela // 2)
        trecho = norm[ini:ini + janela]
        if trecho not in trechos:
            trechos.append(trecho)
    return trechos


def registrar_variacoes(registro: RegistroExecucao, regioes: list[Regiao], config: ConfigExtrator):
    tipo = config.tipo_despacho
    dicas_autorizacao = [*tipo.dicas_autorizacao, *tipo.dicas_georc]
    for r in regioes:
        if not (r.texto or "").strip():
            continue
        if r.nome == "second_bottom":
            trechos = trechos_com_dicas(r.texto, dicas_autorizacao)
            if trechos:
                registro.info("autorizacao_variations", page1=r.pagina, region=r.nome, snippets=trechos)
        if r.nome.startswith("last_bottom"):
            trechos = trechos_com_dicas(r.texto, tipo.dicas_conselho)
            if trechos:
                registro.info("conselho_variations", page1=r.pagina, region=r.nome, snippets=trechos)


def _registrar_regioes(registro: RegistroExecucao, regioes: list[Regiao], tipo: str):
    for r in regioes:
        registro.info(
            "region_text",
            docType=tipo,
            name=r.nome,
            page1=r.pagina,
            bboxN=r.bbox.model_dump() if r.bbox else None,
            text=(r.texto or "")[:_LIMITE_TEXTO_REGIAO],
        )


def assinaturas_do_campo(doc: DocumentoDespacho) -> list[Assinatura]:
    """ASSINANTE encontrado vira um registro de assinatura (com DATA, se houver)."""
    ass = doc.campos.get("ASSINANTE")
    if ass is None or not ass.encontrado:
        return []
    data = doc.campos.get("DATA")
    return [Assinatura(
        metodo="field_assinante",
        assinante=ass.valor,
        data=data.valor if data is not None and data.encontrado else None,
        pagina=ass.pagina,
        bbox=ass.evidencia.bbox if ass.evidencia else None,
        trecho=ass.evidencia.trecho if ass.evidencia else "",
    )]


# ══════════════════════════════════════════════════════════════════════
# ENTRADA
# ══════════════════════════════════════════════════════════════════════

def extrair_despacho(dados: DadosPdf, config: Optional[ConfigExtrator] = None,
                     opcoes: Optional[OpcoesExtracao] = None,
                     callback: Optional[CallbackLog] = None) -> ResultadoExtracao:
    """
    Extrai despacho (e certidão, se houver) de um PDF já lido.
    Erro inesperado de um colaborador → `extraction_failed`, sem exceção.
    """
    config = config or ConfigExtrator()
    opcoes = opcoes or OpcoesExtracao()
    resultado = ResultadoExtracao()
    registro = RegistroExecucao(resultado.logs, callback)

    resultado.pdf = InfoPdf(
        nome_arquivo=dados.nome_arquivo or Path(dados.caminho or "").name,
        caminho=dados.caminho or "",
        paginas=dados.total_paginas,
        sha256=sha256_arquivo(dados.caminho),
    )
    resultado.execucao = InfoExecucao(inicio=agora_iso(), versao_config=config.versao, versoes=versoes_ferramentas())

    try:
        _extrair(dados, config, opcoes, resultado, registro)
    except Exception as e:
        log.exception("[EXTRACAO] Falha inesperada em %s", resultado.pdf.nome_arquivo)
        resultado.erros.append("extraction_failed")
        registro.registrar("error", "extraction_failed", error=f"{type(e).__name__}: {e}")

    resultado.execucao.fim = agora_iso()
    return resultado


def _extrair(dados: DadosPdf, config: ConfigExtrator, opcoes: OpcoesExtracao,
             resultado: ResultadoExtracao, registro: RegistroExecucao) -> None:
    resultado.marcadores = achatar_marcadores(dados.marcadores)
    registro.info("bookmarks_loaded", count=len(resultado.marcadores))

    candidatas = pontuar_candidatas(dados, config, opcoes.filtro_marcador)
    resultado.candidatas = candidatas
    melhor = melhor_candidata(candidatas)
    if melhor is None:
        resultado.erros.append("no_candidates_found")
        return

    score = melhor.melhor_score
    if score < config.correspondencia.score_minimo:
        resultado.erros.append("best_score_below_threshold")

    inicio, fim = intervalo_final(dados, melhor, config)
    registro.info("range_final", startPage1=inicio, endPage1=fim)

    if fim - inicio + 1 < config.documento.min_paginas:
        resultado.erros.append("range_below_min_pages")
        registro.aviso("range_below_min_pages", startPage1=inicio, endPage1=fim,
                       minPages=config.documento.min_paginas)
        return

    regioes = montar_regioes_despacho(dados, inicio, fim, config)
    regioes_certidao: list[Regiao] = []
    pagina_certidao = localizar_certidao(dados, config)
    if pagina_certidao > 0:
        regioes_certidao = montar_regioes_certidao(dados, pagina_certidao, config)
        registro.info("certidao_found", page1=pagina_certidao, regions=len(regioes_certidao))

    if opcoes.registrar_regioes:
        _registrar_regioes(registro, regioes, TIPO_DESPACHO)
        _registrar_regioes(registro, regioes_certidao, TIPO_CERTIDAO)

    extrator_campos = ExtratorCampos(config)
    doc = montar_documento(dados, inicio, fim, score, regioes, opcoes, TIPO_DESPACHO, config, extrator_campos)
    resultado.documentos.append(doc)

    if regioes_certidao:
        certidao = montar_documento(
            dados, pagina_certidao, pagina_certidao, 1.0, regioes_certidao, opcoes, TIPO_CERTIDAO,
            config, extrator_campos,
            campos_permitidos=sorted(CAMPOS_CERTIDAO), avisos_processo=False,
        )
        resultado.documentos.append(certidao)
        registro.info("certidao_document_built", page1=pagina_certidao, docType=TIPO_CERTIDAO)

    registrar_variacoes(registro, regioes, config)

    resultado.assinaturas = mesclar_assinaturas(
        extrair_assinaturas_digitais(dados.assinaturas),
        extrair_assinaturas_texto(doc.bandas),
        assinaturas_do_campo(doc),
    )


def extrair_pdf(caminho: str | Path, config: Optional[ConfigExtrator] = None,
                opcoes: Optional[OpcoesExtracao] = None,
                callback: Optional[CallbackLog] = None) -> ResultadoExtracao:
    """Lê o PDF do disco e extrai. PDF ilegível → dados vazios → no_candidates_found."""
    return extrair_despacho(ler_pdf(caminho), config, opcoes, callback)
