"""Document and query classification.

Derives language, version, authority and path facts for a repository file
from its name, its folder and an optional sample of its text. The query-side
detectors reuse the same vocabularies with a lighter heuristic.
"""

import os
import re
from functools import cmp_to_key

from shared.helper.HelperConfig import HelperConfig
from shared.models.classification import AuthorityInfo, Classification, Language, PathInfo, VersionInfo

CONTENT_SAMPLE_CHARS = 5000

LANGUAGE_BONUS: dict[str, int] = {"norwegian": 6, "english": 3, "mixed": 1, "unknown": 0}
LANGUAGE_RANK: dict[str, int] = {"norwegian": 3, "english": 2, "mixed": 1, "unknown": 0}

NAME_TOKENS_NORWEGIAN = frozenset({"nor", "norsk", "nb", "bokmål", "bokmal"})
NAME_TOKENS_ENGLISH = frozenset({"eng", "english"})
TRANSLATION_TOKENS = frozenset({"translation", "translated", "oversettelse", "oversatt"})

FOLDER_NORWEGIAN = frozenset({"nor", "norsk", "norwegian", "no", "nb", "bokmål", "bokmal"})
FOLDER_ENGLISH = frozenset({"eng", "english", "en"})

ARCHIVE_MARKERS = frozenset({"arkiv", "arkivert", "archive", "archived", "old", "gammel", "gamle", "historisk", "utgått", "utgatt", "superseded", "outdated"})
DRAFT_MARKERS = frozenset({"utkast", "draft", "forslag"})

KEYWORDS_NORWEGIAN = frozenset({
    "og", "ikke", "skal", "som", "det", "er", "av", "til", "med", "eller", "gjelder", "kan",
    "vedtekter", "vedtektene", "lokale", "lover", "styret", "studentene", "studenter", "paragraf",
    "kapittel", "medlemmer", "årsmøte", "generalforsamling", "retningslinjer", "referat", "leder",
})
KEYWORDS_ENGLISH = frozenset({
    "the", "and", "shall", "of", "is", "be", "with", "or", "applies", "can", "must",
    "statutes", "local", "laws", "board", "students", "section", "chapter", "members",
    "assembly", "guidelines", "minutes", "chair", "article",
})

# lighter query vocabularies; "er", "is" and similar are too ambiguous for short texts
QUERY_WORDS_NORWEGIAN = frozenset({
    "hva", "hvordan", "hvem", "hvor", "når", "hvilke", "hvilken", "hvorfor", "sier", "står",
    "og", "ikke", "jeg", "vi", "kan", "skal", "om", "på", "med", "det", "til",
    "vedtektene", "vedtekter", "lokale", "lover", "paragraf", "styret", "studenter",
})
QUERY_WORDS_ENGLISH = frozenset({
    "what", "how", "who", "where", "when", "which", "why", "does", "do", "say", "says",
    "the", "and", "not", "can", "shall", "about", "on", "with", "of", "is",
    "statutes", "local", "laws", "section", "paragraph", "board", "students",
})

MIXED_MIN_EVIDENCE = 3
MIXED_MIN_RATIO = 0.4

CATEGORY_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("statutes", re.compile(r"vedtekt|statute", re.IGNORECASE)),
    ("local-laws", re.compile(r"lokale?\s*lov|local\s*laws?", re.IGNORECASE)),
    ("guidelines", re.compile(r"retningslinje|guideline|polic(?:y|ies)", re.IGNORECASE)),
    ("minutes", re.compile(r"referat|protokoll|minutes", re.IGNORECASE)),
]

QUERY_CATEGORY_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("statutes", re.compile(r"vedtekt|statute", re.IGNORECASE)),
    ("local-laws", re.compile(r"lokale?\s*lov|local\s*laws?", re.IGNORECASE)),
]

# spelling -> display name
CAMPUSES: dict[str, str] = {
    "oslo": "Oslo",
    "bergen": "Bergen",
    "trondheim": "Trondheim",
    "stavanger": "Stavanger",
    "drammen": "Drammen",
    "kristiansand": "Kristiansand",
    "ålesund": "Ålesund",
    "alesund": "Ålesund",
    "aalesund": "Ålesund",
    "bodø": "Bodø",
    "bodoe": "Bodø",
    "bodo": "Bodø",
}

VERSION_PATTERN = re.compile(r"(?<![a-zæøå])(?:version|ver\.?|v)\s*(\d+)(?:[.,](\d+))?", re.IGNORECASE)
WORD_PATTERN = re.compile(r"[a-zæøåäöü]+", re.IGNORECASE)
NORWEGIAN_LETTERS = re.compile(r"[æøå]", re.IGNORECASE)


def _tokens(text: str) -> list[str]:
    return [t.lower() for t in WORD_PATTERN.findall(text or "")]


def _folder_segments(folder_path: str) -> list[str]:
    return [s.strip().lower() for s in (folder_path or "").split("/") if s.strip()]


def authority_sort_key(classification: Classification) -> tuple:
    """Sort key putting the most authoritative classification first."""
    return (
        -classification.version.major,
        -classification.version.minor,
        -LANGUAGE_RANK.get(classification.language, 0),
        not classification.authority.is_latest,
        not classification.authority.is_authoritative,
        classification.authority.is_translation,
        -classification.authority.priority,
    )


def compare_authority(a: Classification, b: Classification) -> int:
    """
    Orders two classifications by authority.

    Returns:
        int: Negative if a ranks above b, positive if below, 0 if equivalent.
    """
    key_a, key_b = authority_sort_key(a), authority_sort_key(b)
    return (key_a > key_b) - (key_a < key_b)


authority_cmp_key = cmp_to_key(compare_authority)


class DocumentClassifier:
    """Classifies repository files and search queries. Never raises on odd input."""

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()

    ##########################################
    ############## DOCUMENT ##################
    ##########################################

    def classify(self, name: str, folder_path: str = "/", content_sample: str | None = None) -> Classification:
        """
        Classifies a document.

        Args:
            name (str): The file name including extension.
            folder_path (str): The folder the file lives in.
            content_sample (str | None): Leading text of the document. Only the first 5000 characters are read.

        Returns:
            Classification: Language, version, authority and path facts.
        """
        name = name or ""
        stem = os.path.splitext(name)[0]
        sample = (content_sample or "")[:CONTENT_SAMPLE_CHARS]

        path_info = self.classify_path(folder_path, name)
        language = self.detect_language(stem, folder_path, sample, path_info)
        version = self.parse_version(stem)
        authority = self.score_authority(stem, folder_path, language, version, path_info)

        classification = Classification(language=language, version=version, authority=authority, path=path_info)
        self.logging.debug(
            "Classified '%s': language=%s version=%s priority=%d latest=%s authoritative=%s translation=%s category=%s",
            name, language, version.raw, authority.priority, authority.is_latest,
            authority.is_authoritative, authority.is_translation, path_info.category,
        )
        return classification

    def detect_language(self, stem: str, folder_path: str = "/", sample: str = "", path_info: PathInfo | None = None) -> Language:
        """Name tokens win over language folders, which win over counted text evidence."""
        name_tokens = set(_tokens(stem))
        explicit_nor = bool(name_tokens & NAME_TOKENS_NORWEGIAN)
        explicit_eng = bool(name_tokens & NAME_TOKENS_ENGLISH)
        if explicit_nor and explicit_eng:
            return "mixed"
        if explicit_nor:
            return "norwegian"
        if explicit_eng:
            return "english"

        path_info = path_info or self.classify_path(folder_path, stem)
        if path_info.language_folder:
            return path_info.language_folder

        text = " ".join([stem, folder_path or "", sample or ""])
        words = _tokens(text)
        nor_score = sum(1 for w in words if w in KEYWORDS_NORWEGIAN)
        eng_score = sum(1 for w in words if w in KEYWORDS_ENGLISH)
        # each special letter is weak evidence, capped so long texts stay balanced
        nor_score += min(len(NORWEGIAN_LETTERS.findall(text)), 20) // 2

        if nor_score == 0 and eng_score == 0:
            return "unknown"
        low, high = sorted((nor_score, eng_score))
        if low >= MIXED_MIN_EVIDENCE and low >= MIXED_MIN_RATIO * high:
            return "mixed"
        return "norwegian" if nor_score >= eng_score else "english"

    def parse_version(self, stem: str) -> VersionInfo:
        match = VERSION_PATTERN.search(stem or "")
        if not match:
            return VersionInfo()
        major = int(match.group(1))
        minor = int(match.group(2)) if match.group(2) else 0
        return VersionInfo(raw=f"v{major}.{minor}", major=major, minor=minor)

    def score_authority(self, stem: str, folder_path: str, language: Language, version: VersionInfo, path_info: PathInfo) -> AuthorityInfo:
        markers = set(_tokens(stem)) | set(_tokens(folder_path or ""))
        is_archived = bool(markers & ARCHIVE_MARKERS)
        is_draft = bool(markers & DRAFT_MARKERS)

        is_latest = not is_archived
        is_authoritative = not is_draft and not is_archived
        is_translation = language == "english" and (
            bool(set(_tokens(stem)) & (NAME_TOKENS_ENGLISH | TRANSLATION_TOKENS))
            or path_info.language_folder == "english"
        )

        priority = (
            version.major * 1000
            + min(version.minor, 99) * 10
            + LANGUAGE_BONUS.get(language, 0)
            + (1 if is_latest else 0)
            + (1 if is_authoritative else 0)
        )
        return AuthorityInfo(
            is_authoritative=is_authoritative,
            is_latest=is_latest,
            is_translation=is_translation,
            priority=priority,
        )

    def classify_path(self, folder_path: str, name: str = "") -> PathInfo:
        """Category from the folder path first, then the file name, plus language subfolder facts."""
        category = "general"
        for text in (folder_path or "", name or ""):
            text = text.replace("_", " ").replace("-", " ")
            found = next((cat for cat, pattern in CATEGORY_PATTERNS if pattern.search(text)), None)
            if found:
                category = found
                break

        language_folder: Language | None = None
        for segment in _folder_segments(folder_path):
            if segment in FOLDER_NORWEGIAN:
                language_folder = "norwegian"
            elif segment in FOLDER_ENGLISH:
                language_folder = "english"

        return PathInfo(
            category=category,
            is_in_language_folder=language_folder is not None,
            language_folder=language_folder,
        )

    ##########################################
    ################ QUERY ###################
    ##########################################

    def detect_query_language(self, query: str) -> Language:
        words = _tokens(query)
        nor_score = sum(1 for w in words if w in QUERY_WORDS_NORWEGIAN)
        eng_score = sum(1 for w in words if w in QUERY_WORDS_ENGLISH)
        if NORWEGIAN_LETTERS.search(query or ""):
            nor_score += 2
        if nor_score == 0 and eng_score == 0:
            return "unknown"
        if nor_score == eng_score:
            return "mixed"
        return "norwegian" if nor_score > eng_score else "english"

    def detect_query_category(self, query: str) -> str | None:
        text = (query or "").replace("_", " ").replace("-", " ")
        return next((cat for cat, pattern in QUERY_CATEGORY_PATTERNS if pattern.search(text)), None)

    def detect_query_region(self, query: str) -> str | None:
        """Returns the display name of the first campus mentioned, e.g. "Ålesund" for "alesund"."""
        for word in _tokens(query):
            if word in CAMPUSES:
                return CAMPUSES[word]
        return None
