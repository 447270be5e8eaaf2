"""Text normalization for the search index.

Stemming itself is left to the FTS5 ``porter`` tokenizer so that indexed text
and queries go through the same stemmer. This module handles the layer above
it: lowercasing, abbreviation normalization, stop-word and number removal,
deduplication, and query expansion.
"""

import re

# Common documentation abbreviations mapped to one canonical form.
NORMALIZATION_RULES = {
    "auth": "authentication",
    "authn": "authentication",
    "authz": "authorization",
    "config": "configuration",
    "configs": "configuration",
    "repo": "repository",
    "repos": "repository",
    "db": "database",
    "env": "environment",
    "dev": "development",
    "prod": "production",
    "impl": "implementation",
    "docs": "documentation",
    "doc": "documentation",
    "app": "application",
    "apps": "application",
    "js": "javascript",
    "ts": "typescript",
    "py": "python",
    "k8s": "kubernetes",
    "signin": "sign-in",
    "login": "sign-in",
    "logout": "sign-out",
    "signup": "sign-up",
    "txs": "transactions",
    "tx": "transaction",
}

STOP_WORDS = frozenset(
    """
    a about above after again against all am an and any are as at be because been before being below
    between both but by can could did do does doing down during each few for from further had has have
    having he her here hers herself him himself his how i if in into is it its itself just me more most
    my myself no nor not now of off on once only or other our ours ourselves out over own same she
    should so some such than that the their theirs them themselves then there these they this those
    through to too under until up very was we were what when where which while who whom why will with
    would you your yours yourself yourselves
    """.split()
)

_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9_-]*")


class TextProcessor:
    """Builds the normalized projection stored in ``searchable_text``."""

    def __init__(self, normalization_rules: dict[str, str] | None = None, stop_words=None):
        self.normalization_rules = dict(NORMALIZATION_RULES if normalization_rules is None else normalization_rules)
        self.stop_words = frozenset(STOP_WORDS if stop_words is None else stop_words)

    def tokenize(self, text: str) -> list[str]:
        """Lowercase and split into word tokens, keeping hyphenated compounds."""
        if not text:
            return []
        return [token.strip("-_") for token in _TOKEN_RE.findall(text.lower()) if token.strip("-_")]

    def process_text(self, text: str) -> list[str]:
        """Normalize, filter and deduplicate tokens, preserving first-seen order."""
        seen: set[str] = set()
        processed = []
        for token in self.tokenize(text):
            token = self.normalization_rules.get(token, token)
            if not self._should_keep(token) or token in seen:
                continue
            seen.add(token)
            processed.append(token)
        return processed

    def _should_keep(self, token: str) -> bool:
        if len(token) < 2:
            return False
        if token in self.stop_words:
            return False
        if token.isdigit():
            return False
        return True

    def expand_query(self, query: str) -> list[str]:
        """Return query terms plus their normalized and abbreviated forms.

        "config" expands to "configuration" so it matches the normalized index,
        and "configuration" expands to "config" so it still matches titles that
        use the short form.
        """
        expanded = []
        for word in self.tokenize(query):
            if word in self.stop_words:
                continue
            candidates = [word, self.normalization_rules.get(word, word)]
            candidates.extend(abbrev for abbrev, full in self.normalization_rules.items() if full == word)
            for candidate in candidates:
                if candidate not in expanded:
                    expanded.append(candidate)
        return expanded

    def create_searchable_text(self, title: str, content: str, section: str, subsection: str | None = None) -> str:
        """Create the normalized projection of title + content + section for indexing."""
        parts = [title, content, section]
        if subsection:
            parts.append(subsection)

        processed = [" ".join(self.process_text(part)) for part in parts]
        return " ".join(part for part in processed if part)
