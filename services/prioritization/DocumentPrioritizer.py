"""Picks one authoritative copy out of each group of duplicate documents.

Documents sharing a normalized base name inside the same folder are copies
of one another in different versions or languages. Each group keeps its
most authoritative member, plus the best English translation when that
member is Norwegian.
"""

import os
import re

from services.classification.DocumentClassifier import DocumentClassifier, authority_cmp_key
from shared.helper.HelperConfig import HelperConfig
from shared.models.classification import Classification
from shared.models.document import SourceDocument

BASE_NAME_STRIP_PATTERNS: list[re.Pattern] = [
    re.compile(r"\s*(?<![a-zæøå])(?:version|ver\.?|v)\s*\d+(?:[.,]\d+)*", re.IGNORECASE),
    re.compile(r"\s*\b(?:nor|norsk|eng|english)\b\s*", re.IGNORECASE),
    re.compile(r"\s*\([^)]*\)"),
]


def normalize_base_name(name: str) -> str:
    """
    Reduces a file name to the part shared by all its versions and translations.

    Args:
        name (str): The file name, e.g. "Lokale lover BISO Oslo v7.1 (NOR).pdf".

    Returns:
        str: Lowercased base name, e.g. "lokale lover biso oslo".
    """
    base = os.path.splitext(name or "")[0].replace("_", " ")
    for pattern in BASE_NAME_STRIP_PATTERNS:
        base = pattern.sub(" ", base)
    return re.sub(r"\s+", " ", base).strip().lower()


def group_key(document: SourceDocument) -> str:
    return f"{normalize_base_name(document.name)}|{(document.folder_path or '/').lower()}"


class DocumentPrioritizer:
    def __init__(self, helper_config: HelperConfig, classifier: DocumentClassifier):
        self.logging = helper_config.get_logger()
        self._classifier = classifier

    def prioritize(self, documents: list[SourceDocument]) -> list[SourceDocument]:
        """
        Drops superseded versions and redundant translations.

        Args:
            documents (list[SourceDocument]): The listed documents.

        Returns:
            list[SourceDocument]: The survivors, groups in order of first appearance, primary before translation.
        """
        groups: dict[str, list[SourceDocument]] = {}
        for document in documents:
            groups.setdefault(group_key(document), []).append(document)

        kept: list[SourceDocument] = []
        for key, members in groups.items():
            if len(members) == 1:
                kept.extend(members)
                continue
            survivors = self._resolve_group(members)
            kept.extend(survivors)
            dropped = [m.name for m in members if not any(m is s for s in survivors)]
            self.logging.info(
                "Group '%s': kept %s, dropped %s",
                key, [s.name for s in survivors], dropped,
            )

        self.logging.info("Prioritized %d documents down to %d", len(documents), len(kept))
        return kept

    def _resolve_group(self, members: list[SourceDocument]) -> list[SourceDocument]:
        classified: list[tuple[SourceDocument, Classification]] = [
            (member, self._classifier.classify(member.name, member.folder_path)) for member in members
        ]
        # sorted() is stable, so equal-ranked members keep their listing order
        ranked = sorted(classified, key=lambda pair: authority_cmp_key(pair[1]))
        primary, primary_class = ranked[0]
        survivors = [primary]

        if primary_class.language == "norwegian":
            translation = next(
                (doc for doc, c in ranked[1:] if c.language == "english" and c.authority.is_translation),
                None,
            )
            if translation is not None:
                survivors.append(translation)
        return survivors
