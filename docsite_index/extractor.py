"""HTML content extraction: plain text, cleaned HTML, markdown and code blocks."""

import hashlib
import logging
import re
from datetime import datetime

from bs4 import BeautifulSoup, Tag
from markdownify import ATX, markdownify

from .models import CodeBlock, Page
from .policy import (
    CODE_BLOCK_SELECTORS,
    CONTENT_SELECTORS,
    DEFAULT_SECTION_MAP,
    DEFAULT_VALID_LANGUAGES,
    NOISE_SELECTORS,
    ROOT_SECTION,
)
from .text import TextProcessor

logger = logging.getLogger(__name__)

_LANGUAGE_PREFIXES = ("language-", "lang-", "highlight-", "hljs-", "brush:")
_CODE_TITLE_SELECTOR = ".code-title, .filename"
_YAML_LINE_RE = re.compile(r"^\s*(-\s|#|[\w.'\"-]+:(\s|$))")


def compute_fingerprint(plain_text: str, title: str) -> str:
    """SHA-256 over ``(plain_text, title)``, the unit of change detection."""
    return hashlib.sha256(f"{plain_text}\x00{title}".encode("utf-8")).hexdigest()


def derive_section(path: str, section_map: dict[str, str] | None = None) -> str:
    """Map the first path segment to a canonical section name.

    Unknown segments are title-cased: ``/getting-started/x`` -> ``Getting Started``.
    """
    section_map = DEFAULT_SECTION_MAP if section_map is None else section_map
    segments = [s for s in path.split("/") if s]
    if not segments:
        return ROOT_SECTION

    first = segments[0]
    mapped = section_map.get(first.lower())
    if mapped:
        return mapped
    return re.sub(r"[-_]+", " ", first).strip().title() or first


def derive_subsection(path: str) -> str | None:
    """Second path segment, if any."""
    segments = [s for s in path.split("/") if s]
    return segments[1] if len(segments) > 1 else None


def detect_language_from_content(code: str) -> str:
    """Guess a language from keyword and syntax patterns, defaulting to ``text``."""
    stripped = code.strip()
    if stripped.startswith("<?php"):
        return "php"
    if stripped.startswith(("#!/bin/bash", "#!/bin/sh", "#!/usr/bin/env bash", "$ ")):
        return "bash"
    if re.search(r"\bfunction\s+\w*\s*\(", code) and "{" in code:
        return "javascript"
    if "=>" in code and re.search(r"\b(const|let)\s+\w+", code):
        return "javascript"
    if re.search(r"^\s*def \w+\(.*\)\s*(->.*)?:", code, re.MULTILINE):
        return "python"
    if re.search(r"^\s*(import \w+|from [\w.]+ import \w+)\s*$", code, re.MULTILINE):
        return "python"
    if "public class " in code or "import java." in code:
        return "java"
    if "#include" in code or re.search(r"\bint main\s*\(", code):
        return "c"
    if re.search(r"<!DOCTYPE|<html", code, re.IGNORECASE):
        return "html"
    if re.search(r"\bSELECT\b[\s\S]+\bFROM\b", code) or re.search(r"\b(INSERT INTO|CREATE TABLE)\b", code):
        return "sql"
    if re.search(r"^\s*(sudo |echo |npm |pip |curl |export |cd )", code, re.MULTILINE):
        return "bash"
    if stripped.startswith(("{", "[")) and '"' in stripped:
        return "json"
    lines = [line for line in stripped.splitlines() if line.strip()]
    if ":" in stripped and lines and all(_YAML_LINE_RE.match(line) for line in lines):
        return "yaml"
    return "text"


class ContentExtractor:
    """Derives every rendering of a page deterministically from its raw HTML."""

    def __init__(
        self,
        text_processor: TextProcessor | None = None,
        valid_languages=None,
        section_map: dict[str, str] | None = None,
        title_suffix: str | None = None,
    ):
        self.text_processor = text_processor or TextProcessor()
        languages = DEFAULT_VALID_LANGUAGES if valid_languages is None else valid_languages
        self.valid_languages = {lang.lower() for lang in languages}
        section_map = DEFAULT_SECTION_MAP if section_map is None else section_map
        self.section_map = {k.lower(): v for k, v in section_map.items()}
        self.title_suffix = title_suffix

    def extract(self, path: str, html: str, source_url: str, fetched_at: datetime | None = None) -> Page:
        """Build a Page from one fetch of ``path``.

        Args:
            path: Site-relative path of the page
            html: Raw HTML as fetched
            source_url: Fully resolved URL the HTML came from
            fetched_at: Fetch timestamp (defaults to now)

        Returns:
            Page with fresh fingerprint and both timestamps set to ``fetched_at``
        """
        _, container, title = self._prepare(html)
        plain_text = self._plain_text(container)
        raw_content_html = container.decode_contents().strip()
        markdown = self._to_markdown(container, plain_text, path)
        code_blocks = self.extract_code_blocks(container)

        section = derive_section(path, self.section_map)
        subsection = derive_subsection(path)
        fetched_at = fetched_at or datetime.now()

        return Page(
            path=path,
            title=title,
            section=section,
            subsection=subsection,
            plain_text=plain_text,
            markdown=markdown,
            raw_content_html=raw_content_html,
            code_blocks=code_blocks,
            content_fingerprint=compute_fingerprint(plain_text, title),
            source_url=source_url,
            last_fetched_at=fetched_at,
            last_checked_at=fetched_at,
            searchable_text=self.text_processor.create_searchable_text(title, plain_text, section, subsection),
        )

    def fingerprint_html(self, html: str) -> str:
        """Fingerprint without building the markdown and code block renderings."""
        _, container, title = self._prepare(html)
        return compute_fingerprint(self._plain_text(container), title)

    def _prepare(self, html: str) -> tuple[BeautifulSoup, Tag, str]:
        """Parse, strip noise, pick the content container and the title."""
        soup = BeautifulSoup(html, "html.parser")

        for selector in NOISE_SELECTORS:
            for element in soup.select(selector):
                if not element.decomposed:
                    element.decompose()

        title = self._extract_title(soup)

        container = soup.select_one(CONTENT_SELECTORS)
        if container is None:
            # No semantic container: use the body without page chrome
            for element in soup.select("header, footer"):
                if not element.decomposed:
                    element.decompose()
            container = soup.body or soup

        return soup, container, title

    def _extract_title(self, soup: BeautifulSoup) -> str:
        title = ""
        if soup.title:
            title = soup.title.get_text(" ", strip=True)
        if not title:
            h1 = soup.find("h1")
            if h1:
                title = h1.get_text(" ", strip=True)
        title = " ".join(title.split())

        if title and self.title_suffix and title.endswith(self.title_suffix):
            title = title[: -len(self.title_suffix)].strip() or title
        return title or "Untitled"

    @staticmethod
    def _plain_text(container: Tag) -> str:
        # Collapse all whitespace so layout-only changes never alter the fingerprint
        return " ".join(container.get_text(" ", strip=True).split())

    def _to_markdown(self, container: Tag, plain_text: str, path: str) -> str:
        """Convert the content container to markdown, falling back to plain text."""
        try:
            markdown = markdownify(
                str(container),
                heading_style=ATX,
                bullets="-",
                code_language_callback=self._markdown_code_language,
            )
        except Exception as e:
            logger.warning(f"[CRAWLER] Markdown conversion failed for {path}: {e}, using plain text")
            return plain_text

        # Clean up markdown
        markdown = re.sub(r"[ \t]+\n", "\n", markdown)
        markdown = re.sub(r"\n{3,}", "\n\n", markdown)
        return markdown.strip()

    def _markdown_code_language(self, pre: Tag) -> str:
        code = pre.find("code") or pre
        language = self.detect_language(code, pre)
        return "" if language == "text" else language

    def extract_code_blocks(self, container: Tag) -> list[CodeBlock]:
        """Scan the content container for code blocks.

        Returns:
            Code blocks in document order, identical (language, code) pairs kept once
        """
        code_blocks: list[CodeBlock] = []
        seen_pairs: set[tuple[str, str]] = set()
        seen_elements: set[int] = set()

        for selector in CODE_BLOCK_SELECTORS:
            for element in container.select(selector):
                if id(element) in seen_elements:
                    continue
                seen_elements.add(id(element))

                code = element.get_text().strip()
                if not code:
                    continue

                pre = element if element.name == "pre" else element.find_parent("pre") or element
                language = self.detect_language(element, pre)

                if (language, code) in seen_pairs:
                    continue
                seen_pairs.add((language, code))

                code_blocks.append(
                    CodeBlock(
                        language=language,
                        code=code,
                        title=self._extract_code_title(pre),
                        has_line_numbers=self._has_line_numbers(pre),
                    )
                )

        return code_blocks

    def detect_language(self, element: Tag, pre: Tag) -> str:
        """Detect a code block's language.

        Explicit markup (class names, then data attributes) wins when it names an
        allow-listed language; otherwise fall back to content heuristics.
        """
        candidates = [element, pre]
        inner_code = pre.find("code") if pre.name == "pre" else None
        if inner_code is not None:
            candidates.append(inner_code)

        # 1. Class attributes
        for node in candidates:
            for token in node.get("class") or []:
                language = self._normalize_language_token(token)
                if language:
                    return language

        # 2. Data attributes
        for node in candidates:
            for attr in ("data-lang", "data-language"):
                value = node.get(attr)
                if value and value.strip().lower() in self.valid_languages:
                    return value.strip().lower()

        # 3. Content heuristics
        return detect_language_from_content(element.get_text())

    def _normalize_language_token(self, token: str) -> str | None:
        token = token.lower()
        for prefix in _LANGUAGE_PREFIXES:
            if token.startswith(prefix):
                token = token[len(prefix) :]
                break
        return token if token in self.valid_languages else None

    @staticmethod
    def _extract_code_title(pre: Tag) -> str | None:
        """Look for a code block title in attributes and nearby title elements."""
        for attr in ("title", "data-title"):
            value = pre.get(attr)
            if value and value.strip():
                return value.strip()

        previous = pre.find_previous_sibling()
        if previous is not None and set(previous.get("class") or []) & {"code-title", "filename"}:
            text = previous.get_text(strip=True)
            if text:
                return text

        for scope in (pre, pre.parent):
            if scope is None:
                continue
            found = scope.select_one(_CODE_TITLE_SELECTOR)
            if found is not None and found.get_text(strip=True):
                return found.get_text(strip=True)
        return None

    @staticmethod
    def _has_line_numbers(pre: Tag) -> bool:
        return (
            "line-numbers" in (pre.get("class") or [])
            or pre.select_one(".line-number") is not None
            or pre.get("data-line-numbers") == "true"
        )
