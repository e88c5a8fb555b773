"""Tests for structure detection and chunking."""

import pytest

from services.chunking.Chunker import MAX_PART_CHARS, WINDOW_CHARS, Chunker
from services.chunking.StructureDetector import RegexStructureDetector

STATUTES = (
    "Vedtekter for BISO\n"
    "\n"
    "§ 1 Navn\n"
    "Organisasjonens navn er BISO, og den er en frivillig studentorganisasjon.\n"
    "\n"
    "§ 6.3 Valg av styre\n"
    "Styret velges av generalforsamlingen for ett år om gangen. Ved stemmelikhet avgjør leder.\n"
)


@pytest.fixture
def chunker(helper_config) -> Chunker:
    return Chunker(helper_config)


def _covered(chunks, length: int) -> set[int]:
    covered: set[int] = set()
    for chunk in chunks:
        covered.update(range(chunk.start_char, min(chunk.end_char, length)))
    return covered


class TestRegexStructureDetector:
    def test_detects_paragraph_and_numbered_headers(self) -> None:
        text = "§ 1 Navn\nTekst\n2.1 Styrets oppgaver\nTekst\nArtikkel 4 Medlemskap\nTekst"
        sections = RegexStructureDetector().detect(text)
        assert [(s.number, s.title) for s in sections] == [
            ("1", "Navn"),
            ("2.1", "Styrets oppgaver"),
            ("4", "Medlemskap"),
        ]

    def test_sections_are_sorted_and_unique(self) -> None:
        sections = RegexStructureDetector().detect(STATUTES)
        starts = [s.start for s in sections]
        assert starts == sorted(set(starts))

    def test_years_are_not_headers(self) -> None:
        assert RegexStructureDetector().detect("2023 Årsmelding\nTekst om året som gikk.") == []

    def test_numbered_header_needs_capitalized_title(self) -> None:
        assert RegexStructureDetector().detect("3 eller flere medlemmer kan kreve møte.") == []


class TestStructuredChunking:
    def test_section_number_is_kept(self, chunker) -> None:
        chunks = chunker.chunk(STATUTES)
        section = next(c for c in chunks if c.section_number == "6.3")
        assert section.chunk_type == "structured"
        assert section.section_title == "Valg av styre"
        assert section.content.startswith("§ 6.3 Valg av styre")
        assert "stemmelikhet" in section.content

    def test_preamble_is_kept(self, chunker) -> None:
        chunks = chunker.chunk(STATUTES)
        assert chunks[0].chunk_type == "semantic"
        assert chunks[0].content == "Vedtekter for BISO"

    def test_indices_are_contiguous(self, chunker) -> None:
        chunks = chunker.chunk(STATUTES)
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))

    def test_spans_cover_the_text(self, chunker) -> None:
        chunks = chunker.chunk(STATUTES)
        covered = _covered(chunks, len(STATUTES))
        assert all(i in covered for i, char in enumerate(STATUTES) if not char.isspace())

    def test_short_section_is_extended(self, chunker) -> None:
        text = "§ 1 Navn\nBISO.\n§ 2 Formål\n" + "Organisasjonen skal fremme studentenes interesser. " * 5
        chunks = chunker.chunk(text)
        first = next(c for c in chunks if c.section_number == "1")
        assert len(first.content) > 50
        assert "§ 2 Formål" in first.content

    def test_long_section_is_split_with_repeated_header(self, chunker) -> None:
        lines = [f"Linje {i:02d}: styret har ansvar for den daglige driften av organisasjonen." for i in range(60)]
        text = "§ 4 Styret\n" + "\n".join(lines)
        chunks = chunker.chunk(text)

        assert len(chunks) > 1
        assert all(c.chunk_type == "structured_part" for c in chunks)
        assert all(c.section_number == "4" for c in chunks)
        assert all(len(c.content) <= MAX_PART_CHARS for c in chunks)
        assert all(c.content.startswith("§ 4 Styret") for c in chunks)
        # consecutive parts overlap by whole lines
        last_line_of_first = chunks[0].content.splitlines()[-1]
        assert last_line_of_first in chunks[1].content

        covered = _covered(chunks, len(text))
        assert all(i in covered for i, char in enumerate(text) if not char.isspace())


class TestWindowChunking:
    def test_unstructured_text_uses_windows(self, chunker) -> None:
        text = " ".join(f"Dette er setning nummer {i} i et referat uten overskrifter." for i in range(100))
        chunks = chunker.chunk(text)

        assert len(chunks) > 1
        assert all(c.chunk_type == "semantic" for c in chunks)
        assert all(c.section_number is None for c in chunks)
        assert all(len(c.content) <= WINDOW_CHARS for c in chunks)
        # windows overlap
        assert all(b.start_char < a.end_char for a, b in zip(chunks, chunks[1:]))

    def test_windows_end_on_sentence_boundaries(self, chunker) -> None:
        text = " ".join(f"Dette er setning nummer {i} i et referat uten overskrifter." for i in range(100))
        chunks = chunker.chunk(text)
        assert all(c.content.endswith(".") for c in chunks)

    def test_no_empty_chunks(self, chunker) -> None:
        text = "Kort.\n\n\n\n" + "Et avsnitt med nok tekst til å bli en egen bit i indeksen. " * 40
        chunks = chunker.chunk(text)
        assert chunks
        assert all(c.content.strip() for c in chunks)

    @pytest.mark.parametrize("text", ["", "   \n\n  "])
    def test_blank_text_has_no_chunks(self, chunker, text) -> None:
        assert chunker.chunk(text) == []

    def test_tiny_text_is_dropped(self, chunker) -> None:
        assert chunker.chunk("Hei.") == []
