"""Section header detection for statutory and legal text."""

import re
from abc import ABC, abstractmethod

from shared.models.chunk import Section

# group 1: section number, group 2: rest of the header line
HEADER_PATTERNS: list[re.Pattern] = [
    re.compile(r"^[ \t]*§[ \t]*(\d+(?:\.\d+)*)\.?[ \t]*([^\n]*)$", re.MULTILINE),
    re.compile(r"^[ \t]*(?:paragraf|avsnitt|section|paragraph|article|artikkel)[ \t]+(\d+(?:\.\d+)*)\.?[ \t]*([^\n]*)$", re.MULTILINE | re.IGNORECASE),
    # "6.3 Title"; at most three digits per level so years do not count as headers
    re.compile(r"^[ \t]*(\d{1,3}(?:\.\d{1,3})*)\.?[ \t]+([A-ZÆØÅ][^\n]*)$", re.MULTILINE),
]


class StructureDetector(ABC):
    @abstractmethod
    def detect(self, text: str) -> list[Section]:
        """
        Finds section headers in a text.

        Args:
            text (str): The normalized document text.

        Returns:
            list[Section]: Headers sorted by position, at most one per start offset.
        """
        pass


class RegexStructureDetector(StructureDetector):
    """Line-anchored regex headers: "§ N", "paragraf N", "section N", "article N" and "N.N Title"."""

    def __init__(self, patterns: list[re.Pattern] | None = None):
        self._patterns = patterns or HEADER_PATTERNS

    def detect(self, text: str) -> list[Section]:
        by_start: dict[int, Section] = {}
        for pattern in self._patterns:
            for match in pattern.finditer(text or ""):
                # earlier patterns win on the same line
                if match.start() in by_start:
                    continue
                by_start[match.start()] = Section(
                    number=match.group(1),
                    title=match.group(2).strip(),
                    start=match.start(),
                    end=match.end(),
                )
        return [by_start[start] for start in sorted(by_start)]
