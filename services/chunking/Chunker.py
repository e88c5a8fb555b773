"""Structure-aware chunking with a sliding-window fallback.

Statutory documents are cut at their section headers so every chunk keeps
its numeric reference. Long sections are split by line into parts that
repeat the header. Text without any header is cut into overlapping windows
ending on paragraph or sentence boundaries.
"""

from typing import Any

from services.chunking.StructureDetector import RegexStructureDetector, StructureDetector
from shared.helper.HelperConfig import HelperConfig
from shared.models.chunk import Chunk, ChunkType, Section

MIN_SECTION_CHARS = 50          # shorter sections are extended forward
SECTION_EXTENSION_CHARS = 500
MAX_SECTION_CHARS = 2000        # longer sections are split into parts
MAX_PART_CHARS = 1500
PART_OVERLAP_LINES = 3
MAX_SEGMENT_CHARS = 300         # longer lines are cut at spaces before grouping
MAX_REPEATED_HEADER_CHARS = 200

WINDOW_CHARS = 1200
WINDOW_OVERLAP_CHARS = 300
WINDOW_BOUNDARY_RATIO = 0.6     # boundaries must lie in the back 40% of a window
MIN_WINDOW_CHUNK_CHARS = 50


class Chunker:
    def __init__(self, helper_config: HelperConfig, structure_detector: StructureDetector | None = None):
        self.logging = helper_config.get_logger()
        self._detector = structure_detector or RegexStructureDetector()

    def chunk(self, text: str, metadata: dict[str, Any] | None = None) -> list[Chunk]:
        """
        Splits a document's text into retrieval units.

        Args:
            text (str): The normalized document text.
            metadata (dict[str, Any] | None): Document facts, only used for logging.

        Returns:
            list[Chunk]: Chunks with contiguous chunk_index from 0. No chunk has empty trimmed content.
        """
        name = (metadata or {}).get("document_name", "document")
        if not text or not text.strip():
            return []

        sections = self._detector.detect(text)
        if sections:
            chunks = self._chunk_structured(text, sections)
            self.logging.debug("Created %d structure-aware chunks from %d sections of %s", len(chunks), len(sections), name)
        else:
            chunks = self._chunk_windows(text, 0, len(text), MIN_WINDOW_CHUNK_CHARS)
            self.logging.debug("Created %d semantic chunks of %s", len(chunks), name)

        return [chunk.model_copy(update={"chunk_index": index}) for index, chunk in enumerate(chunks)]

    ##########################################
    ############## STRUCTURED ################
    ##########################################

    def _chunk_structured(self, text: str, sections: list[Section]) -> list[Chunk]:
        chunks: list[Chunk] = []

        # text before the first header has no number but must not get lost
        if text[:sections[0].start].strip():
            chunks.extend(self._chunk_windows(text, 0, sections[0].start, 0))

        for i, section in enumerate(sections):
            start = section.start
            end = sections[i + 1].start if i + 1 < len(sections) else len(text)

            if len(text[start:end].strip()) < MIN_SECTION_CHARS:
                end = min(end + SECTION_EXTENSION_CHARS, len(text))

            if len(text[start:end].strip()) > MAX_SECTION_CHARS:
                chunks.extend(self._split_section(text, section, start, end))
                continue

            content = text[start:end].strip()
            if content:
                chunks.append(self._make_chunk(content, "structured", start, end, section))
        return chunks

    def _split_section(self, text: str, section: Section, start: int, end: int) -> list[Chunk]:
        """Cuts a long section into parts of at most MAX_PART_CHARS, each starting with the header line."""
        segments = self._segments(text, start, end)
        header = text[segments[0][0]:segments[0][1]][:MAX_REPEATED_HEADER_CHARS]

        parts: list[Chunk] = []
        # (segment index of the first line in the part, index of the first line not yet emitted)
        part_first, new_first = 0, 0
        i = 1
        while i < len(segments):
            candidate = self._part_content(text, header, segments, part_first, i, first_part=not parts)
            has_new_lines = i - 1 >= new_first
            if len(candidate) > MAX_PART_CHARS and has_new_lines:
                parts.append(self._emit_part(text, header, segments, part_first, i - 1, section, first_part=not parts))
                part_first = max(i - PART_OVERLAP_LINES, 1)
                new_first = i
            i += 1

        if len(segments) - 1 >= new_first:
            tail = self._part_content(text, header, segments, part_first, len(segments) - 1, first_part=not parts)
            if tail.strip():
                parts.append(self._emit_part(text, header, segments, part_first, len(segments) - 1, section, first_part=not parts))
        return parts

    def _part_content(self, text: str, header: str, segments: list[tuple[int, int]], first: int, last: int, first_part: bool) -> str:
        body = text[segments[first][0]:segments[last][1]]
        return body if first_part else f"{header}\n{body}"

    def _emit_part(self, text: str, header: str, segments: list[tuple[int, int]], first: int, last: int, section: Section, first_part: bool) -> Chunk:
        content = self._part_content(text, header, segments, first, last, first_part).strip()
        return self._make_chunk(content, "structured_part", segments[first][0], segments[last][1], section)

    @staticmethod
    def _segments(text: str, start: int, end: int) -> list[tuple[int, int]]:
        """Absolute (start, end) offsets of the lines in text[start:end], long lines cut at spaces."""
        segments: list[tuple[int, int]] = []
        pos = start
        while pos < end:
            newline = text.find("\n", pos, end)
            line_end = end if newline == -1 else newline
            seg_start = pos
            while line_end - seg_start > MAX_SEGMENT_CHARS:
                cut = text.rfind(" ", seg_start + 1, seg_start + MAX_SEGMENT_CHARS)
                cut = cut if cut != -1 else seg_start + MAX_SEGMENT_CHARS
                segments.append((seg_start, cut))
                seg_start = cut
            segments.append((seg_start, line_end))
            pos = line_end + 1
        return segments

    ##########################################
    ############### WINDOWS ##################
    ##########################################

    def _chunk_windows(self, text: str, start: int, stop: int, min_chars: int) -> list[Chunk]:
        """Overlapping windows over text[start:stop]. Chunks of min_chars or fewer trimmed characters are dropped."""
        chunks: list[Chunk] = []
        while start < stop:
            end = min(start + WINDOW_CHARS, stop)
            if end < stop:
                window = text[start:end]
                boundary = self._find_boundary(window)
                if boundary is not None:
                    end = start + boundary + 1

            content = text[start:end].strip()
            if len(content) > min_chars:
                chunks.append(self._make_chunk(content, "semantic", start, end))

            if end >= stop:
                break
            start = max(end - WINDOW_OVERLAP_CHARS, start + 1)
        return chunks

    @staticmethod
    def _find_boundary(window: str) -> int | None:
        """Offset of the last paragraph break, sentence end or newline in the back part of the window."""
        threshold = len(window) * WINDOW_BOUNDARY_RATIO
        for marker in ("\n\n", ". ", ".\n", "\n"):
            pos = window.rfind(marker)
            if pos > threshold:
                return pos
        return None

    @staticmethod
    def _make_chunk(content: str, chunk_type: ChunkType, start: int, end: int, section: Section | None = None) -> Chunk:
        return Chunk(
            content=content,
            chunk_index=0,
            chunk_type=chunk_type,
            section_number=section.number if section else None,
            section_title=(section.title or None) if section else None,
            start_char=start,
            end_char=end,
        )
