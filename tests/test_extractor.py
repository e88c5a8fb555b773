"""Tests for content type handling and text extraction."""

import io
import zipfile

import fitz
import pytest
from docx import Document as WordDocument

from shared.exceptions.IndexingErrors import ExtractionError, UnsupportedContentTypeError
from shared.extractors.ContentExtractor import MIME_DOCX, MIME_PDF, ContentExtractor


@pytest.fixture
def extractor(helper_config) -> ContentExtractor:
    return ContentExtractor(helper_config)


class TestContentTypes:
    def test_generic_type_corrected_from_extension(self, extractor) -> None:
        assert extractor.correct_content_type("application/octet-stream", "Vedtekter.PDF") == MIME_PDF
        assert extractor.correct_content_type("", "notat.docx") == MIME_DOCX

    def test_specific_type_is_kept(self, extractor) -> None:
        assert extractor.correct_content_type("text/html; charset=utf-8", "side.txt") == "text/html"

    def test_unknown_extension_keeps_generic_type(self, extractor) -> None:
        assert extractor.correct_content_type("application/octet-stream", "bilde.png") == "application/octet-stream"

    def test_supported(self, extractor) -> None:
        assert extractor.is_supported_content_type("application/octet-stream", "referat.md")
        assert not extractor.is_supported_content_type("image/png", "bilde.png")

    def test_unsupported_raises(self, extractor) -> None:
        with pytest.raises(UnsupportedContentTypeError) as exc_info:
            extractor.extract(b"\x89PNG", "image/png", "bilde.png")
        assert exc_info.value.content_type == "image/png"


class TestExtraction:
    def test_plain_text_with_bom(self, extractor) -> None:
        data = "\ufeffHei  verden\r\n\r\n\r\n\r\nNeste   linje  ".encode("utf-8")
        assert extractor.extract(data, "text/plain") == "Hei verden\n\nNeste linje"

    def test_latin1_fallback(self, extractor) -> None:
        assert extractor.extract("Årsmøte".encode("latin-1"), "text/plain") == "Årsmøte"

    def test_html_drops_scripts(self, extractor) -> None:
        html = b"<html><head><style>p{}</style><script>alert(1)</script></head><body><h1>Vedtekter</h1><p>Tekst</p></body></html>"
        text = extractor.extract(html, "text/html")
        assert "Vedtekter" in text
        assert "Tekst" in text
        assert "alert" not in text

    def test_docx(self, extractor) -> None:
        document = WordDocument()
        document.add_paragraph("§ 1 Navn")
        document.add_paragraph("Organisasjonens navn er BISO.")
        buffer = io.BytesIO()
        document.save(buffer)
        text = extractor.extract(buffer.getvalue(), "application/octet-stream", "vedtekter.docx")
        assert "§ 1 Navn\nOrganisasjonens navn er BISO." in text

    def test_pdf(self, extractor) -> None:
        pdf = fitz.open()
        page = pdf.new_page()
        page.insert_text((72, 72), "Statutes of BISO")
        data = pdf.tobytes()
        pdf.close()
        assert "Statutes of BISO" in extractor.extract(data, MIME_PDF)

    def test_pptx_slides_in_order(self, extractor) -> None:
        ns = "http://schemas.openxmlformats.org/drawingml/2006/main"
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            for number, title in ((10, "Ti"), (2, "To")):
                archive.writestr(
                    f"ppt/slides/slide{number}.xml",
                    f'<p:sld xmlns:p="p" xmlns:a="{ns}"><a:p><a:r><a:t>{title}</a:t></a:r></a:p></p:sld>',
                )
        text = extractor.extract(buffer.getvalue(), "", "slides.pptx")
        assert text == "To\n\nTi"

    def test_broken_file_raises_extraction_error(self, extractor) -> None:
        with pytest.raises(ExtractionError):
            extractor.extract(b"not a zip", MIME_DOCX, "broken.docx")


class TestNormalize:
    def test_collapses_whitespace_and_keeps_lines(self) -> None:
        raw = "  Linje en\t\tmed  mellomrom \n\n\n\n\nLinje to\x00 "
        assert ContentExtractor.normalize(raw) == "Linje en med mellomrom\n\nLinje to"

    def test_empty(self) -> None:
        assert ContentExtractor.normalize("  \n \n") == ""
