# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/catalogos.py — Catálogo de peritos e tabela de honorários
# ══════════════════════════════════════════════════════════════════════
"""
Dados de referência carregados uma única vez (cache) e somente leitura:

- Catálogo de peritos (CSV): resolve nome/CPF/especialidade do perito
- Tabela de honorários do Anexo I (CSV) + aliases (JSON): resolve a
  espécie da perícia e o valor tabelado a partir da especialidade e do
  valor arbitrado

Também contém as duas etapas de enriquecimento dos campos extraídos.
Arquivo ausente ou malformado → catálogo vazio (com aviso no log).
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from extrator_despacho.config import ConfigExtrator, ConfigHonorarios
from extrator_despacho.modelos import Campo, Evidencia
from extrator_despacho.texto import (
    formatar_valor,
    normalizar_cpf,
    normalizar_espacos,
    normalizar_para_busca,
    parse_valor_br,
    remover_acentos,
)

log = logging.getLogger("extrator_despacho")

METODO_CATALOGO = "catalogo_peritos"
METODO_HONORARIOS = "tabela_honorarios"

_COLUNAS_NOME = ("PERITO", "NOME", "NOME_PERITO")
_COLUNAS_CPF = ("CPF/CNPJ", "CPF", "DOCUMENTO")
_COLUNAS_ESPECIALIDADE = ("ESPECIALIDADE", "PROFISSAO", "PROFISSÃO")

_RE_REGISTRO_PROFISSIONAL = re.compile(
    r"\b(CPF|CNPJ|PIS|INSS|RG|CRM|CRP|CRO|COREN|CREFITO)\b.*$", re.IGNORECASE
)


def _ler_csv(caminho: Path) -> pd.DataFrame:
    """Lê um CSV como texto puro; cabeçalhos em maiúsculas e sem espaços."""
    df = pd.read_csv(caminho, dtype=str, keep_default_na=False, encoding="utf-8")
    df.columns = [str(c).strip().upper() for c in df.columns]
    return df


def _escolher(linha: pd.Series, colunas: Iterable[str]) -> str:
    for coluna in colunas:
        if coluna in linha.index:
            valor = str(linha[coluna] or "").strip()
            if valor:
                return valor
    return ""


# ══════════════════════════════════════════════════════════════════════
# CATÁLOGO DE PERITOS
# ══════════════════════════════════════════════════════════════════════

@dataclass
class PeritoInfo:
    nome: str = ""
    cpf: str = ""
    especialidade: str = ""
    origem: str = ""
    varias_especialidades: bool = False


def chave_nome(nome: str | None) -> str:
    """Chave de nome: sem acentos, maiúsculas, só letras/dígitos/espaço."""
    if not nome or not nome.strip():
        return ""
    n = remover_acentos(nome).upper()
    n = re.sub(r"[^A-Z0-9 ]+", " ", n)
    return normalizar_espacos(n)


def _parece_nome(nome: str) -> bool:
    if not nome or "@" in nome or len(nome) < 5:
        return False
    if re.search(r"interessad[oa]|sighop", nome, re.IGNORECASE):
        return False
    return any(c.isalpha() for c in nome)


def _limpar_especialidade(esp: str) -> str:
    v = (esp or "").strip()
    if not v or "@" in v or re.search(r"interessad[oa]|sighop", v, re.IGNORECASE):
        return ""
    v = _RE_REGISTRO_PROFISSIONAL.sub("", v)
    return normalizar_espacos(v[:120])


def _melhor(candidatos: list[PeritoInfo]) -> PeritoInfo:
    """Prefere quem tem especialidade, depois quem tem CPF."""
    return sorted(
        candidatos,
        key=lambda p: (not p.especialidade.strip(), not p.cpf.strip()),
    )[0]


@dataclass
class CatalogoPeritos:
    por_cpf: dict[str, PeritoInfo] = field(default_factory=dict)
    por_nome: dict[str, list[PeritoInfo]] = field(default_factory=dict)
    origens: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.por_cpf) + len(self.por_nome)

    def carregar_arquivo(self, caminho: Path):
        try:
            df = _ler_csv(caminho)
        except (OSError, ValueError, pd.errors.ParserError) as e:
            log.warning("[CATALOGO] Falha ao ler %s: %s", caminho, e)
            return
        self.origens.append(str(caminho))

        for _, linha in df.iterrows():
            nome = _escolher(linha, _COLUNAS_NOME)
            cpf = normalizar_cpf(_escolher(linha, _COLUNAS_CPF))
            if not nome and not cpf:
                continue
            if nome and not _parece_nome(nome):
                continue

            info = PeritoInfo(
                nome=normalizar_espacos(nome.strip(",;.- ")),
                cpf=cpf,
                especialidade=_limpar_especialidade(_escolher(linha, _COLUNAS_ESPECIALIDADE)),
                origem=caminho.name,
            )
            if info.cpf:
                existente = self.por_cpf.get(info.cpf)
                self.por_cpf[info.cpf] = _melhor([existente, info]) if existente else info
            chave = chave_nome(info.nome)
            if chave:
                self.por_nome.setdefault(chave, []).append(info)

        for lista in self.por_nome.values():
            especialidades = {p.especialidade.lower() for p in lista if p.especialidade}
            if len(especialidades) > 1:
                for p in lista:
                    p.varias_especialidades = True

    def resolver(self, nome: str | None, cpf: str | None) -> Optional[tuple[PeritoInfo, float]]:
        """
        Busca por CPF (confiança 0.9); senão pela chave do nome (0.75, ou
        0.6 quando o mesmo nome aparece com especialidades diferentes).
        """
        digitos = normalizar_cpf(cpf)
        if digitos and digitos in self.por_cpf:
            return self.por_cpf[digitos], 0.9

        lista = self.por_nome.get(chave_nome(nome))
        if lista:
            escolhido = _melhor(lista)
            return escolhido, (0.6 if escolhido.varias_especialidades else 0.75)
        return None


@lru_cache(maxsize=8)
def _catalogo_em_cache(caminhos: tuple[str, ...]) -> CatalogoPeritos:
    catalogo = CatalogoPeritos()
    for c in caminhos:
        caminho = Path(c)
        if not caminho.exists():
            log.warning("[CATALOGO] Catálogo de peritos não encontrado: %s", caminho)
            continue
        catalogo.carregar_arquivo(caminho)
    log.info("[CATALOGO] Peritos carregados: %d CPFs, %d nomes",
             len(catalogo.por_cpf), len(catalogo.por_nome))
    return catalogo


def carregar_catalogo_peritos(config: ConfigExtrator) -> CatalogoPeritos:
    caminhos = tuple(
        str(config.resolver_caminho(c))
        for c in config.referencia.catalogos_peritos
        if c and c.strip()
    )
    return _catalogo_em_cache(caminhos)


# ══════════════════════════════════════════════════════════════════════
# TABELA DE HONORÁRIOS (ANEXO I)
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EntradaHonorarios:
    area: str
    descricao: str
    id: str
    valor: Decimal


def _chave_honorarios(texto: str | None) -> str:
    if not texto or not texto.strip():
        return ""
    t = remover_acentos(texto).lower()
    return normalizar_espacos(re.sub(r"[^a-z0-9]+", " ", t))


def _area_padrao(norm: str) -> str:
    """Mapeamento embutido especialidade → área do Anexo I."""
    if not norm:
        return ""
    if any(k in norm for k in ("grafotec", "grafoscop", "grafocop", "contab", "contador")):
        return "CIÊNCIAS CONTÁBEIS"
    if any(k in norm for k in ("engenh", "arquitet", "civil", "insalubr", "periculos")):
        return "ENGENHARIA E ARQUITETURA"
    if any(k in norm for k in ("odont", "medic", "psiquiat")):
        return "MEDICINA / ODONTOLOGIA"
    if any(k in norm for k in ("assistente social", "servico social", "estudo social")):
        return "SERVIÇO SOCIAL"
    if "psicol" in norm or "entrevistadora forense" in norm:
        return "PSICOLOGIA"
    return ""


def _parse_valor_tabela(bruto: str) -> Optional[Decimal]:
    limpo = (bruto or "").strip()
    if not limpo:
        return None
    if "," in limpo:
        return parse_valor_br(limpo)
    return parse_valor_br(limpo.replace(".", ","))


@dataclass
class TabelaHonorarios:
    config: ConfigHonorarios = field(default_factory=ConfigHonorarios)
    entradas: list[EntradaHonorarios] = field(default_factory=list)
    aliases: list[tuple[str, tuple[str, ...]]] = field(default_factory=list)

    def carregar_tabela(self, caminho: Path):
        try:
            df = _ler_csv(caminho)
        except (OSError, ValueError, pd.errors.ParserError) as e:
            log.warning("[HONORARIOS] Falha ao ler %s: %s", caminho, e)
            return
        for _, linha in df.iterrows():
            descricao = _escolher(linha, ("DESCRICAO",))
            valor = _parse_valor_tabela(_escolher(linha, ("VALOR",)))
            if not descricao or valor is None:
                continue
            self.entradas.append(EntradaHonorarios(
                area=_escolher(linha, ("AREA",)),
                descricao=descricao,
                id=_escolher(linha, ("ID",)),
                valor=valor,
            ))

    def carregar_aliases(self, caminho: Path):
        try:
            itens = json.loads(caminho.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            log.warning("[HONORARIOS] Aliases ignorados (%s): %s", caminho, e)
            return
        if not isinstance(itens, list):
            return
        for item in itens:
            if not isinstance(item, dict):
                continue
            alvo = str(item.get("TargetId") or item.get("target_id") or "").strip()
            palavras = tuple(
                k for k in (_chave_honorarios(str(p)) for p in item.get("Keywords") or item.get("keywords") or [])
                if k
            )
            if alvo and palavras:
                self.aliases.append((alvo, palavras))

    def _por_alias(self, norm: str) -> Optional[EntradaHonorarios]:
        for alvo, palavras in self.aliases:
            if any(k in norm for k in palavras):
                for e in self.entradas:
                    if e.id == alvo:
                        return e
        return None

    def _mapear_area(self, norm: str) -> str:
        for mapa in self.config.mapa_areas:
            for palavra in mapa.palavras_chave:
                chave = _chave_honorarios(palavra)
                if chave and chave in norm:
                    return mapa.area
        return _area_padrao(norm)

    def casar(self, especialidade: str, valor: Decimal) -> Optional[tuple[EntradaHonorarios, float]]:
        """
        Alias por palavra-chave → 0.9. Senão, área da especialidade + valor
        mais próximo dentro da tolerância → 0.75.
        """
        if not especialidade or not especialidade.strip() or not self.entradas:
            return None
        norm = _chave_honorarios(especialidade)

        por_alias = self._por_alias(norm)
        if por_alias is not None:
            return por_alias, 0.9

        area = self._mapear_area(norm)
        if not area:
            return None
        candidatos = [e for e in self.entradas if e.area.lower() == area.lower()]
        if not candidatos:
            return None

        melhor = min(candidatos, key=lambda e: abs(e.valor - valor))
        diferenca = abs(melhor.valor - valor)
        proporcao = Decimal(1) if valor == 0 else diferenca / valor
        tolerancia = self.config.tolerancia_valor if self.config.tolerancia_valor > 0 else 0.15
        if proporcao > Decimal(str(tolerancia)):
            return None
        return melhor, 0.75


@lru_cache(maxsize=8)
def _tabela_em_cache(config: ConfigHonorarios, tabela: str, aliases: str) -> TabelaHonorarios:
    resultado = TabelaHonorarios(config=config)
    if tabela:
        caminho = Path(tabela)
        if caminho.exists():
            resultado.carregar_tabela(caminho)
        else:
            log.warning("[HONORARIOS] Tabela não encontrada: %s", caminho)
    if aliases and Path(aliases).exists():
        resultado.carregar_aliases(Path(aliases))
    log.info("[HONORARIOS] Tabela carregada: %d entradas, %d aliases",
             len(resultado.entradas), len(resultado.aliases))
    return resultado


def carregar_tabela_honorarios(config: ConfigExtrator) -> TabelaHonorarios:
    hon = config.referencia.honorarios
    tabela = str(config.resolver_caminho(hon.caminho_tabela)) if hon.caminho_tabela.strip() else ""
    aliases = str(config.resolver_caminho(hon.caminho_aliases)) if hon.caminho_aliases.strip() else ""
    return _tabela_em_cache(hon, tabela, aliases)


# ══════════════════════════════════════════════════════════════════════
# ENRIQUECIMENTO DOS CAMPOS
# ══════════════════════════════════════════════════════════════════════

def _campo_catalogo(valor: str, confianca: float, evidencia: Optional[Evidencia], metodo: str) -> Campo:
    return Campo(
        valor=valor,
        confianca=min(0.9, max(0.55, confianca)),
        metodo=metodo,
        evidencia=evidencia,
    )


def _fraco(campo: Optional[Campo]) -> bool:
    return campo is None or not campo.encontrado or campo.confianca < 0.6


def parece_perito_ruidoso(valor: str) -> bool:
    if not valor or not valor.strip() or "@" in valor:
        return True
    norm = normalizar_para_busca(valor)
    ruidos = ("perito", "engenheiro", "medic", "grafotec", "grafoscop", "psicol", "assistente social")
    return any(r in norm for r in ruidos)


def especialidade_fraca(valor: str) -> bool:
    if not valor or not valor.strip():
        return True
    norm = normalizar_para_busca(valor)
    if len(norm) <= 6:
        return True
    return len(norm.split()) == 1 and norm in ("engenheiro", "medico", "medica", "psicologo", "psicologa")


def enriquecer_com_catalogo(campos: dict[str, Campo], catalogo: CatalogoPeritos) -> None:
    """Substitui PERITO / CPF_PERITO / ESPECIALIDADE ausentes, fracos ou ruidosos."""
    perito = campos.get("PERITO")
    cpf = campos.get("CPF_PERITO")
    esp = campos.get("ESPECIALIDADE")

    resolvido = catalogo.resolver(perito.valor if perito else "", cpf.valor if cpf else "")
    if resolvido is None:
        return
    info, confianca = resolvido
    evidencia = (perito.evidencia if perito and perito.evidencia else None) or (cpf.evidencia if cpf else None)

    if (_fraco(perito) or parece_perito_ruidoso(perito.valor)) and info.nome:
        campos["PERITO"] = _campo_catalogo(info.nome, confianca, evidencia, METODO_CATALOGO)

    if (_fraco(cpf) or len(normalizar_cpf(cpf.valor)) != 11) and info.cpf:
        campos["CPF_PERITO"] = _campo_catalogo(info.cpf, confianca, evidencia, METODO_CATALOGO)

    if (_fraco(esp) or especialidade_fraca(esp.valor)) and info.especialidade:
        campos["ESPECIALIDADE"] = _campo_catalogo(info.especialidade, confianca, evidencia, METODO_CATALOGO)


def aplicar_tabela_honorarios(campos: dict[str, Campo], tabela: TabelaHonorarios,
                              config: ConfigHonorarios) -> None:
    """Preenche ESPECIE_DA_PERICIA e VALOR_TABELADO_ANEXO_I pela tabela do Anexo I."""
    esp = campos.get("ESPECIALIDADE")
    if esp is None or not esp.encontrado:
        return

    base: Optional[Campo] = None
    de = campos.get("VALOR_ARBITRADO_DE")
    jz = campos.get("VALOR_ARBITRADO_JZ")
    if config.preferir_valor_de and de is not None and de.encontrado:
        base = de
    elif config.permitir_valor_jz and jz is not None and jz.encontrado:
        base = jz
    if base is None:
        return

    valor = parse_valor_br(base.valor)
    if valor is None:
        return
    casado = tabela.casar(esp.valor, valor)
    if casado is None:
        return
    entrada, confianca = casado
    if base.metodo in ("template_region:first_top", "heuristic"):
        confianca = max(0.55, confianca - 0.1)

    if _fraco(campos.get("ESPECIE_DA_PERICIA")) and entrada.descricao:
        campos["ESPECIE_DA_PERICIA"] = _campo_catalogo(
            entrada.descricao, confianca, base.evidencia, METODO_HONORARIOS)
    if _fraco(campos.get("VALOR_TABELADO_ANEXO_I")):
        campos["VALOR_TABELADO_ANEXO_I"] = _campo_catalogo(
            formatar_valor(entrada.valor), confianca, base.evidencia, METODO_HONORARIOS)
