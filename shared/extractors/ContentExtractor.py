"""Raw document bytes to normalized plain text.

PDF goes through PyMuPDF, Word through python-docx and HTML through
BeautifulSoup. PowerPoint and Excel files are read directly from their
OOXML parts.
"""

import io
import os
import re
import zipfile
from xml.etree import ElementTree

import fitz  # PyMuPDF
from bs4 import BeautifulSoup
from docx import Document as WordDocument

from shared.exceptions.IndexingErrors import ExtractionError, UnsupportedContentTypeError
from shared.helper.HelperConfig import HelperConfig

MIME_PDF = "application/pdf"
MIME_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
MIME_PPTX = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
MIME_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
MIME_CSV = "text/csv"
MIME_HTML = "text/html"
MIME_MARKDOWN = "text/markdown"
MIME_TEXT = "text/plain"

SUPPORTED_CONTENT_TYPES: dict[str, str] = {
    MIME_PDF: "pdf",
    MIME_DOCX: "docx",
    MIME_PPTX: "pptx",
    MIME_XLSX: "xlsx",
    MIME_CSV: "text",
    MIME_HTML: "html",
    MIME_MARKDOWN: "text",
    "text/x-markdown": "text",
    MIME_TEXT: "text",
}

EXTENSION_CONTENT_TYPES: dict[str, str] = {
    ".pdf": MIME_PDF,
    ".docx": MIME_DOCX,
    ".pptx": MIME_PPTX,
    ".xlsx": MIME_XLSX,
    ".csv": MIME_CSV,
    ".html": MIME_HTML,
    ".htm": MIME_HTML,
    ".md": MIME_MARKDOWN,
    ".markdown": MIME_MARKDOWN,
    ".txt": MIME_TEXT,
}

GENERIC_CONTENT_TYPES = frozenset({"", "application/octet-stream", "binary/octet-stream", "application/binary"})

_NS_DRAWING = "{http://schemas.openxmlformats.org/drawingml/2006/main}"
_NS_SHEET = "{http://schemas.openxmlformats.org/spreadsheetml/2006/main}"


class ContentExtractor:
    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    @staticmethod
    def _base_type(content_type: str | None) -> str:
        # "text/html; charset=utf-8" -> "text/html"
        return (content_type or "").split(";")[0].strip().lower()

    def correct_content_type(self, content_type: str | None, file_name: str | None = None) -> str:
        """
        Replaces a generic content type by the one implied by the file extension.

        Args:
            content_type (str | None): The type reported by the repository.
            file_name (str | None): The file name, used for the extension lookup.

        Returns:
            str: The corrected type, or the reported type when it is specific or the extension is unknown.
        """
        base = self._base_type(content_type)
        if base not in GENERIC_CONTENT_TYPES or not file_name:
            return base or "application/octet-stream"
        extension = os.path.splitext(file_name)[1].lower()
        corrected = EXTENSION_CONTENT_TYPES.get(extension)
        if corrected:
            self.logging.debug("Corrected content type of %s from '%s' to '%s'", file_name, base, corrected)
            return corrected
        return base or "application/octet-stream"

    def is_supported_content_type(self, content_type: str | None, file_name: str | None = None) -> bool:
        return self.correct_content_type(content_type, file_name) in SUPPORTED_CONTENT_TYPES

    ##########################################
    ############## EXTRACTION ################
    ##########################################

    def extract(self, data: bytes, content_type: str, file_name: str | None = None) -> str:
        """
        Extracts and normalizes the text of a document.

        Args:
            data (bytes): The raw file content.
            content_type (str): The (possibly generic) content type.
            file_name (str | None): The file name, used to correct generic content types.

        Returns:
            str: The normalized text. May be empty for documents without a text layer.

        Raises:
            UnsupportedContentTypeError: If the content type cannot be turned into text.
            ExtractionError: If the parser fails on the document.
        """
        corrected = self.correct_content_type(content_type, file_name)
        kind = SUPPORTED_CONTENT_TYPES.get(corrected)
        if kind is None:
            raise UnsupportedContentTypeError(corrected, content_type)

        try:
            if kind == "pdf":
                text = self._extract_pdf(data)
            elif kind == "docx":
                text = self._extract_docx(data)
            elif kind == "pptx":
                text = self._extract_pptx(data)
            elif kind == "xlsx":
                text = self._extract_xlsx(data)
            elif kind == "html":
                text = self._extract_html(data)
            else:
                text = self._decode(data)
        except Exception as e:
            raise ExtractionError(f"Failed to extract text from {file_name or 'document'} ({corrected}): {e}") from e

        return self.normalize(text)

    def _extract_pdf(self, data: bytes) -> str:
        doc = fitz.open(stream=data, filetype="pdf")
        try:
            pages = [doc[index].get_text() or "" for index in range(len(doc))]
        finally:
            doc.close()
        return "\n".join(pages)

    def _extract_docx(self, data: bytes) -> str:
        document = WordDocument(io.BytesIO(data))
        parts = [paragraph.text for paragraph in document.paragraphs]
        for table in document.tables:
            for row in table.rows:
                parts.append("\t".join(cell.text for cell in row.cells))
        return "\n".join(parts)

    def _extract_pptx(self, data: bytes) -> str:
        slides: list[str] = []
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            slide_names = [n for n in archive.namelist() if re.fullmatch(r"ppt/slides/slide\d+\.xml", n)]
            # slide10 after slide9
            slide_names.sort(key=lambda n: int(re.search(r"(\d+)\.xml$", n).group(1)))
            for name in slide_names:
                root = ElementTree.fromstring(archive.read(name))
                paragraphs = []
                for paragraph in root.iter(f"{_NS_DRAWING}p"):
                    line = "".join(t.text or "" for t in paragraph.iter(f"{_NS_DRAWING}t"))
                    if line.strip():
                        paragraphs.append(line)
                slides.append("\n".join(paragraphs))
        return "\n\n".join(slides)

    def _extract_xlsx(self, data: bytes) -> str:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            shared_strings: list[str] = []
            if "xl/sharedStrings.xml" in archive.namelist():
                root = ElementTree.fromstring(archive.read("xl/sharedStrings.xml"))
                for item in root.iter(f"{_NS_SHEET}si"):
                    shared_strings.append("".join(t.text or "" for t in item.iter(f"{_NS_SHEET}t")))

            sheet_names = [n for n in archive.namelist() if re.fullmatch(r"xl/worksheets/sheet\d+\.xml", n)]
            sheet_names.sort(key=lambda n: int(re.search(r"(\d+)\.xml$", n).group(1)))
            rows: list[str] = []
            for name in sheet_names:
                root = ElementTree.fromstring(archive.read(name))
                for row in root.iter(f"{_NS_SHEET}row"):
                    values = []
                    for cell in row.iter(f"{_NS_SHEET}c"):
                        values.append(self._xlsx_cell_value(cell, shared_strings))
                    if any(values):
                        rows.append("\t".join(values))
                rows.append("")
        return "\n".join(rows)

    @staticmethod
    def _xlsx_cell_value(cell: ElementTree.Element, shared_strings: list[str]) -> str:
        cell_type = cell.get("t")
        if cell_type == "inlineStr":
            return "".join(t.text or "" for t in cell.iter(f"{_NS_SHEET}t"))
        value = cell.find(f"{_NS_SHEET}v")
        if value is None or value.text is None:
            return ""
        if cell_type == "s":
            index = int(value.text)
            return shared_strings[index] if index < len(shared_strings) else ""
        return value.text

    def _extract_html(self, data: bytes) -> str:
        soup = BeautifulSoup(self._decode(data), "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        return soup.get_text(separator="\n")

    @staticmethod
    def _decode(data: bytes) -> str:
        # BOM-aware, falls back to latin-1 which never fails
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError:
            return data.decode("latin-1")

    ##########################################
    ############## NORMALIZE #################
    ##########################################

    @staticmethod
    def normalize(text: str) -> str:
        """
        Collapses horizontal whitespace and blank line runs while keeping line structure.

        Args:
            text (str): Raw extracted text.

        Returns:
            str: Text with single spaces inside lines, no trailing spaces and at most one blank line in a row.
        """
        text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\x00", "")
        text = re.sub(r"[ \t\f\v\u00a0]+", " ", text)
        text = "\n".join(line.strip() for line in text.split("\n"))
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()
