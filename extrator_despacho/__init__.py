"""
Extrator de despachos da Diretoria Especial do TJPB (e da certidão do
Conselho da Magistratura) a partir de PDFs de processos de pagamento de
honorários periciais.

Uso:
    from extrator_despacho import extrair_pdf, carregar_config
    resultado = extrair_pdf("processo.pdf", carregar_config("config/tjpb.yml"))
"""

__version__ = "0.1.0"

from extrator_despacho.config import ConfigExtrator, OpcoesExtracao, carregar_config
from extrator_despacho.extrator import extrair_despacho, extrair_pdf
from extrator_despacho.leitor_pdf import ler_pdf

__all__ = [
    "ConfigExtrator",
    "OpcoesExtracao",
    "carregar_config",
    "extrair_despacho",
    "extrair_pdf",
    "ler_pdf",
]
