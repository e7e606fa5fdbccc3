"""
Execução direta para inspeção:

    python -m extrator_despacho <arquivo.pdf | pasta> [config.yml]

Imprime o resultado em JSON. Com uma pasta, processa todos os PDFs dela.
"""

import json
import logging
import sys
from pathlib import Path

from extrator_despacho.config import carregar_config
from extrator_despacho.extrator import extrair_pdf


def _imprimir_resumo(resultado):
    print(f"\n{'='*70}")
    print(f"PROCESSANDO: {resultado.pdf.nome_arquivo} ({resultado.pdf.paginas} páginas)")
    print(f"{'='*70}")
    if resultado.erros:
        print(f"  Erros: {', '.join(resultado.erros)}")
    for doc in resultado.documentos:
        print(f"\n  [{doc.tipo}] páginas {doc.pagina_inicio}-{doc.pagina_fim}  score={doc.score:.2f}")
        for nome, campo in doc.campos.items():
            print(f"    {nome:<25} {campo.valor:<40} {campo.confianca:.2f}  {campo.metodo}")


def main(argv=None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        print(__doc__)
        return 2

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    alvo = Path(argv[0])
    config = carregar_config(argv[1] if len(argv) > 1 else None)
    caminhos = sorted(alvo.glob("*.pdf")) if alvo.is_dir() else [alvo]

    for caminho in caminhos:
        resultado = extrair_pdf(caminho, config)
        if len(caminhos) > 1:
            _imprimir_resumo(resultado)
        else:
            print(json.dumps(resultado.model_dump(mode="json"), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
