"""Tests for document and query classification."""

from functools import cmp_to_key

import pytest

from services.classification.DocumentClassifier import DocumentClassifier, compare_authority


@pytest.fixture
def classifier(helper_config) -> DocumentClassifier:
    return DocumentClassifier(helper_config)


class TestVersionParsing:
    @pytest.mark.parametrize(
        "stem, expected",
        [
            ("Lokale lover BISO Oslo v7.1", (7, 1)),
            ("Vedtekter versjon 3", (0, 0)),
            ("Statutes version 4.2", (4, 2)),
            ("Statutes V2", (2, 0)),
            ("Rapport 2023", (0, 0)),
            ("Retningslinjer ver. 5,3", (5, 3)),
        ],
    )
    def test_parse_version(self, classifier, stem, expected) -> None:
        version = classifier.parse_version(stem)
        assert (version.major, version.minor) == expected

    def test_missing_version_is_v0_0(self, classifier) -> None:
        assert classifier.parse_version("Referat styremøte").raw == "v0.0"

    def test_letter_before_v_is_not_a_version(self, classifier) -> None:
        assert classifier.parse_version("Gjennomgang av2").major == 0


class TestLanguageDetection:
    def test_name_token_wins(self, classifier) -> None:
        assert classifier.classify("Local laws v7.1 ENG.pdf").language == "english"
        assert classifier.classify("Lokale lover v7.1 NOR.pdf").language == "norwegian"

    def test_language_folder_used_when_name_is_silent(self, classifier) -> None:
        assert classifier.classify("Dokument.pdf", "/Styret/English").language == "english"

    def test_keywords_in_content(self, classifier) -> None:
        sample = "Styret skal bestå av medlemmer som er valgt av studentene og det gjelder til neste årsmøte."
        assert classifier.classify("Dokument.pdf", "/", sample).language == "norwegian"

    def test_no_evidence_is_unknown(self, classifier) -> None:
        assert classifier.classify("1234.pdf").language == "unknown"

    def test_balanced_evidence_is_mixed(self, classifier) -> None:
        sample = "the board shall and the members of the assembly. styret skal og medlemmer er til det som"
        assert classifier.classify("Dokument.pdf", "/", sample).language == "mixed"

    def test_only_first_5000_characters_are_read(self, classifier) -> None:
        sample = "x " * 2500 + "the board shall and the members of the assembly " * 50
        assert classifier.classify("1234.pdf", "/", sample).language == "unknown"


class TestAuthority:
    def test_priority_formula(self, classifier) -> None:
        classification = classifier.classify("Lokale lover BISO Oslo v7.1.pdf")
        # 7*1000 + 1*10 + norwegian 6 + latest 1 + authoritative 1
        assert classification.authority.priority == 7018

    def test_archive_marker_clears_latest_and_authoritative(self, classifier) -> None:
        classification = classifier.classify("Vedtekter v3.0.pdf", "/Arkiv")
        assert not classification.authority.is_latest
        assert not classification.authority.is_authoritative

    def test_draft_is_not_authoritative(self, classifier) -> None:
        classification = classifier.classify("Vedtekter utkast v4.0.pdf")
        assert classification.authority.is_latest
        assert not classification.authority.is_authoritative

    def test_english_copy_is_translation(self, classifier) -> None:
        assert classifier.classify("Statutes v7.1 ENG.pdf").authority.is_translation
        assert not classifier.classify("Vedtekter v7.1.pdf").authority.is_translation

    def test_higher_version_outranks_language(self, classifier) -> None:
        english_new = classifier.classify("Local laws v7.1 ENG.pdf")
        norwegian_old = classifier.classify("Lokale lover v7.0.pdf")
        assert compare_authority(english_new, norwegian_old) < 0

    def test_ordering_across_versions_and_languages(self, classifier) -> None:
        names = ["Lokale lover v6.3.pdf", "Local laws v7.1 ENG.pdf", "Lokale lover v7.0.pdf", "Lokale lover v7.1.pdf"]
        classified = {name: classifier.classify(name) for name in names}
        ordered = sorted(names, key=lambda n: cmp_to_key(compare_authority)(classified[n]))
        assert ordered == ["Lokale lover v7.1.pdf", "Local laws v7.1 ENG.pdf", "Lokale lover v7.0.pdf", "Lokale lover v6.3.pdf"]


class TestPathClassification:
    def test_category_from_folder(self, classifier) -> None:
        assert classifier.classify_path("/Styringsdokumenter/Vedtekter").category == "statutes"

    def test_category_from_name_when_folder_is_generic(self, classifier) -> None:
        assert classifier.classify_path("/Dokumenter", "Lokale lover BISO.pdf").category == "local-laws"

    def test_default_category(self, classifier) -> None:
        path = classifier.classify_path("/Diverse", "Notat.pdf")
        assert path.category == "general"
        assert not path.is_in_language_folder
        assert path.language_folder is None

    def test_language_folder(self, classifier) -> None:
        path = classifier.classify_path("/Vedtekter/Norsk")
        assert path.is_in_language_folder
        assert path.language_folder == "norwegian"


class TestQueryDetection:
    def test_norwegian_letters_count(self, classifier) -> None:
        assert classifier.detect_query_language("Hva står i § 6.3 vedtektene?") == "norwegian"

    def test_english_query(self, classifier) -> None:
        assert classifier.detect_query_language("What does the statute say about the board?") == "english"

    def test_empty_query_is_unknown(self, classifier) -> None:
        assert classifier.detect_query_language("§ 6.3") == "unknown"

    def test_category(self, classifier) -> None:
        assert classifier.detect_query_category("§ 6.3 vedtektene") == "statutes"
        assert classifier.detect_query_category("local laws for Bergen") == "local-laws"
        assert classifier.detect_query_category("opening hours") is None

    def test_region_display_name(self, classifier) -> None:
        assert classifier.detect_query_region("lokale lover alesund") == "Ålesund"
        assert classifier.detect_query_region("budget") is None
