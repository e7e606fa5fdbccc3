import fitz
import pytest

from extrator_despacho.extrator import extrair_pdf
from extrator_despacho.leitor_pdf import _valor_assinatura, data_pdf_iso, ler_pdf, montar_arvore_marcadores, palavra_normalizada


def test_palavra_normalizada_inverte_o_eixo_y():
    p = palavra_normalizada({"text": "Despacho", "x0": 10, "x1": 20, "top": 10, "bottom": 20}, 100, 200)
    assert p.texto == "Despacho"
    assert (p.x0, p.x1) == pytest.approx((0.1, 0.2))
    assert (p.y0, p.y1) == pytest.approx((0.9, 0.95))


def test_palavra_vazia_ou_pagina_degenerada():
    assert palavra_normalizada({"text": "  ", "x0": 0, "x1": 1, "top": 0, "bottom": 1}, 100, 100) is None
    assert palavra_normalizada({"text": "a", "x0": 0, "x1": 1, "top": 0, "bottom": 1}, 0, 100) is None


def test_data_pdf_iso():
    assert data_pdf_iso("D:20240115103000-03'00'") == "2024-01-15T10:30:00"
    assert data_pdf_iso("D:20240115") == "2024-01-15T00:00:00"
    assert data_pdf_iso("D:20241399") is None
    assert data_pdf_iso("") is None


def test_arvore_de_marcadores():
    toc = [[1, "Petição", 1], [1, "Despacho", 4], [2, "Anexo", 6], [2, "Certidão", 8], [1, "Final", 9]]
    raizes = montar_arvore_marcadores(toc)
    assert [m.titulo for m in raizes] == ["Petição", "Despacho", "Final"]
    assert [(f.titulo, f.pagina, f.nivel) for f in raizes[1].filhos] == [("Anexo", 6, 2), ("Certidão", 8, 2)]


def test_arquivo_ausente(tmp_path):
    dados = ler_pdf(tmp_path / "nao_existe.pdf")
    assert dados.paginas == []
    assert dados.nome_arquivo == "nao_existe.pdf"


def test_arquivo_corrompido(tmp_path):
    caminho = tmp_path / "quebrado.pdf"
    caminho.write_bytes(b"isto nao e um pdf")
    assert ler_pdf(caminho).total_paginas == 0


def test_le_palavras_e_marcadores(tmp_path):
    caminho = tmp_path / "despacho.pdf"
    doc = fitz.open()
    for texto in ("DESPACHO", "Documento assinado eletronicamente"):
        pagina = doc.new_page()
        pagina.insert_text((72, 72), texto, fontsize=12)
    doc.set_toc([[1, "Despacho", 1], [1, "Assinatura", 2]])
    doc.save(str(caminho))
    doc.close()

    dados = ler_pdf(caminho)
    assert dados.total_paginas == 2
    assert "DESPACHO" in dados.pagina(1).texto
    palavra = dados.pagina(1).palavras[0]
    assert palavra.texto == "DESPACHO"
    assert palavra.y0 > 0.85
    assert palavra.y1 > palavra.y0
    assert [(m.titulo, m.pagina) for m in dados.marcadores] == [("Despacho", 1), ("Assinatura", 2)]
    assert dados.assinaturas == []


def _pdf_simples(caminho, paginas=3):
    doc = fitz.open()
    for i in range(paginas):
        doc.new_page().insert_text((72, 72), f"Página {i + 1}", fontsize=12)
    doc.set_toc([[1, "Despacho", 1]])
    doc.save(str(caminho))
    doc.close()


def test_outline_corrompido_mantem_as_paginas(tmp_path, monkeypatch):
    caminho = tmp_path / "outline.pdf"
    _pdf_simples(caminho)

    def get_toc_quebrado(self, simple=True):
        raise RuntimeError("outline corrompido")

    monkeypatch.setattr(fitz.Document, "get_toc", get_toc_quebrado)
    dados = ler_pdf(caminho)
    assert dados.total_paginas == 3
    assert dados.marcadores == []
    assert dados.assinaturas == []

    resultado = extrair_pdf(caminho)
    assert resultado.erros == ["no_candidates_found"]
    assert resultado.pdf.paginas == 3


class _DocFalso:
    def __init__(self, v):
        self.v = v

    def xref_get_key(self, xref, chave):
        return self.v


class _WidgetFalso:
    xref = 12


def test_valor_de_assinatura_estranho():
    assert _valor_assinatura(_DocFalso(("xref", "abc 0 R")), _WidgetFalso()) == {}
    assert _valor_assinatura(_DocFalso(("xref", "")), _WidgetFalso()) == {}
    assert _valor_assinatura(_DocFalso(("null", "null")), _WidgetFalso()) == {}
