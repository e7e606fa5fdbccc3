# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/modelos.py — Modelos de dados da extração
# ══════════════════════════════════════════════════════════════════════
"""
Modelos pydantic usados em toda a extração.

Coordenadas são normalizadas em [0, 1] com o eixo Y crescendo para cima
(convenção PDF): "topo da página" = y próximo de 1.

Três grupos:
1. Registros de entrada vindos do leitor de PDF (Palavra, PaginaPdf,
   Marcador, AssinaturaDigital, DadosPdf)
2. Estruturas derivadas (Linha, Paragrafo, Banda, SegmentoBanda, Regiao)
3. Saída auditável (Campo, Evidencia, JanelaCandidata, DocumentoDespacho,
   ResultadoExtracao)
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


CAMPO_AUSENTE = "-"
METODO_NAO_ENCONTRADO = "not_found"


# ══════════════════════════════════════════════════════════════════════
# GEOMETRIA
# ══════════════════════════════════════════════════════════════════════

class BBox(BaseModel):
    model_config = ConfigDict(frozen=True)

    x0: float
    y0: float
    x1: float
    y1: float


class Palavra(BaseModel):
    """Um token de texto com caixa normalizada."""

    model_config = ConfigDict(frozen=True)

    texto: str
    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def centro_y(self) -> float:
        return (self.y0 + self.y1) / 2.0

    @property
    def bbox(self) -> BBox:
        return BBox(x0=self.x0, y0=self.y0, x1=self.x1, y1=self.y1)


# ══════════════════════════════════════════════════════════════════════
# ENTRADA (colaborador de leitura do PDF)
# ══════════════════════════════════════════════════════════════════════

class PaginaPdf(BaseModel):
    numero: int
    texto: str = ""
    rotacao: int = 0
    palavras: list[Palavra] = Field(default_factory=list)


class Marcador(BaseModel):
    """Entrada do sumário (bookmark). pagina = 0 quando não resolvida."""

    titulo: str = ""
    nivel: int = 1
    pagina: int = 0
    filhos: list["Marcador"] = Field(default_factory=list)


class WidgetAssinatura(BaseModel):
    pagina: int
    bbox: Optional[BBox] = None


class AssinaturaDigital(BaseModel):
    campo: str = ""
    nome_assinante: str = ""
    assunto_certificado: str = ""
    motivo: str = ""
    local: str = ""
    data: Optional[str] = None
    widgets: list[WidgetAssinatura] = Field(default_factory=list)


class DadosPdf(BaseModel):
    caminho: str = ""
    nome_arquivo: str = ""
    paginas: list[PaginaPdf] = Field(default_factory=list)
    marcadores: list[Marcador] = Field(default_factory=list)
    assinaturas: list[AssinaturaDigital] = Field(default_factory=list)

    @property
    def total_paginas(self) -> int:
        return len(self.paginas)

    def pagina(self, numero: int) -> Optional[PaginaPdf]:
        if 1 <= numero <= len(self.paginas):
            return self.paginas[numero - 1]
        return None


# ══════════════════════════════════════════════════════════════════════
# ESTRUTURAS DERIVADAS
# ══════════════════════════════════════════════════════════════════════

class Linha(BaseModel):
    palavras: list[Palavra] = Field(default_factory=list)
    texto: str = ""
    bbox: Optional[BBox] = None
    centro_y: float = 0.0


class Paragrafo(BaseModel):
    pagina: int
    indice: int = 0
    palavras: list[Palavra] = Field(default_factory=list)
    texto: str = ""
    bbox: Optional[BBox] = None


class Banda(BaseModel):
    """Registro plano (com hash) de uma faixa da página."""

    pagina: int
    banda: str
    texto: str = ""
    hash_sha256: str = ""
    bbox: Optional[BBox] = None


class SegmentoBanda(BaseModel):
    """Faixa da página com as palavras, para regex + bbox."""

    pagina: int
    banda: str
    texto: str = ""
    palavras: list[Palavra] = Field(default_factory=list)
    bbox: Optional[BBox] = None


class Regiao(BaseModel):
    nome: str
    pagina: int
    palavras: list[Palavra] = Field(default_factory=list)
    texto: str = ""
    bbox: Optional[BBox] = None


# ══════════════════════════════════════════════════════════════════════
# SAÍDA
# ══════════════════════════════════════════════════════════════════════

class Evidencia(BaseModel):
    pagina: int = 0
    bbox: Optional[BBox] = None
    trecho: str = ""


class Campo(BaseModel):
    valor: str = CAMPO_AUSENTE
    confianca: float = 0.1
    metodo: str = METODO_NAO_ENCONTRADO
    evidencia: Optional[Evidencia] = None

    @property
    def encontrado(self) -> bool:
        return self.metodo != METODO_NAO_ENCONTRADO

    @property
    def pagina(self) -> int:
        return self.evidencia.pagina if self.evidencia else 0


def nao_encontrado(confianca: float = 0.1) -> Campo:
    """Sentinela de ausência: valor "-", método not_found."""
    return Campo(valor=CAMPO_AUSENTE, confianca=confianca, metodo=METODO_NAO_ENCONTRADO)


class Assinatura(BaseModel):
    metodo: str = ""
    campo: str = ""
    assinante: str = ""
    data: Optional[str] = None
    motivo: str = ""
    local: str = ""
    pagina: int = 0
    bbox: Optional[BBox] = None
    trecho: str = ""


class MarcadorPlano(BaseModel):
    titulo: str
    pagina: int
    pagina0: int
    nivel: int = 1


class JanelaCandidata(BaseModel):
    pagina_inicio: int
    pagina_fim: int
    score_edicao: float = 0.0
    score_diff: float = 0.0
    ancoras: list[str] = Field(default_factory=list)
    densidade: dict[str, float] = Field(default_factory=dict)
    sinais: dict[str, Any] = Field(default_factory=dict)

    @property
    def melhor_score(self) -> float:
        return max(self.score_edicao, self.score_diff)

    @property
    def fonte(self) -> str:
        return str(self.sinais.get("source", ""))


class DocumentoDespacho(BaseModel):
    tipo: str = "despacho"
    pagina_inicio: int
    pagina_fim: int
    score: float = 0.0
    bandas: list[Banda] = Field(default_factory=list)
    paragrafos: list[Paragrafo] = Field(default_factory=list)
    campos: dict[str, Campo] = Field(default_factory=dict)
    avisos: list[str] = Field(default_factory=list)


class InfoPdf(BaseModel):
    nome_arquivo: str = ""
    caminho: str = ""
    paginas: int = 0
    sha256: str = ""


class InfoExecucao(BaseModel):
    inicio: str = ""
    fim: str = ""
    versao_config: str = ""
    versoes: dict[str, str] = Field(default_factory=dict)


class RegistroLog(BaseModel):
    nivel: str = "info"
    mensagem: str = ""
    dados: dict[str, Any] = Field(default_factory=dict)
    em: str = ""


class ResultadoExtracao(BaseModel):
    pdf: InfoPdf = Field(default_factory=InfoPdf)
    execucao: InfoExecucao = Field(default_factory=InfoExecucao)
    marcadores: list[MarcadorPlano] = Field(default_factory=list)
    candidatas: list[JanelaCandidata] = Field(default_factory=list)
    documentos: list[DocumentoDespacho] = Field(default_factory=list)
    assinaturas: list[Assinatura] = Field(default_factory=list)
    erros: list[str] = Field(default_factory=list)
    logs: list[RegistroLog] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════
# CONTEXTO DE UM DESPACHO (entrada da extração de campos)
# ══════════════════════════════════════════════════════════════════════

class TextoPagina(BaseModel):
    pagina: int
    texto: str = ""


class ContextoDespacho(BaseModel):
    """Tudo o que as passadas de campos enxergam de um intervalo de páginas."""

    texto_completo: str = ""
    paragrafos: list[Paragrafo] = Field(default_factory=list)
    bandas: list[Banda] = Field(default_factory=list)
    segmentos: list[SegmentoBanda] = Field(default_factory=list)
    regioes: list[Regiao] = Field(default_factory=list)
    paginas: list[TextoPagina] = Field(default_factory=list)
    assinaturas: list[Assinatura] = Field(default_factory=list)
    nome_arquivo: str = ""
    caminho: str = ""
    numero_processo: str = ""
    assinantes_rodape: list[str] = Field(default_factory=list)
    assinatura_rodape_bruta: Optional[str] = None
    pagina_inicio: int = 0
    pagina_fim: int = 0

    def texto_da_pagina(self, pagina: int) -> str:
        for p in self.paginas:
            if p.pagina == pagina:
                return p.texto
        return ""
