"""Tests for search text normalization."""

import pytest

from docsite_index.text import TextProcessor


@pytest.fixture
def processor():
    return TextProcessor()


@pytest.mark.unit
class TestTextProcessor:
    """Test tokenization, normalization and query expansion."""

    def test_tokenize_lowercases_and_keeps_compounds(self, processor):
        assert processor.tokenize("Sign-In with OAuth2!") == ["sign-in", "with", "oauth2"]

    def test_process_text_filters_and_deduplicates(self, processor):
        tokens = processor.process_text("The config and the Config file, version 2")

        assert tokens == ["configuration", "file", "version"]

    def test_expand_query_adds_normalized_form(self, processor):
        assert processor.expand_query("auth") == ["auth", "authentication"]

    def test_expand_query_adds_abbreviations(self, processor):
        expanded = processor.expand_query("configuration")

        assert expanded[0] == "configuration"
        assert "config" in expanded
        assert "configs" in expanded

    def test_expand_query_drops_stop_words(self, processor):
        assert processor.expand_query("the database") == ["database", "db"]

    def test_create_searchable_text(self, processor):
        text = processor.create_searchable_text("Auth Setup", "Configure the repo", "Guides", "oauth")

        assert text == "authentication setup configure repository guides oauth"

    def test_custom_rules(self):
        processor = TextProcessor(normalization_rules={"k8s": "kubernetes"}, stop_words=set())

        assert processor.process_text("a k8s cluster") == ["kubernetes", "cluster"]
