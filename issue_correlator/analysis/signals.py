"""Diagnostic signal extraction from issue text.

Pattern and keyword based only: error lines, exception type names, stack
trace blocks, technology mentions and frequent words.
"""

import re
from collections import Counter

from ..config import SignalSettings
from ..github_client.models import GitHubIssue
from .models import DiagnosticSignals

# "<Something>Error: message", "Exception: message", "Build Failed: message"
ERROR_LINE_PATTERN = re.compile(
    r"(?P<label>\b[A-Za-z_][\w.]*?(?:Error|Exception|Failed)|\bERROR|\bFAILED)"
    r"\s*:\s*(?P<message>\S.*)",
    re.IGNORECASE,
)
BRACKETED_ERROR_PATTERN = re.compile(r"\[ERROR\]\s*(?P<message>\S.*)", re.IGNORECASE)
EXCEPTION_TYPE_PATTERN = re.compile(r"\b([A-Za-z_]\w*(?:Error|Exception))\b")
CODE_BLOCK_PATTERN = re.compile(r"```.*?```", re.DOTALL)
FILE_LINE_PATTERN = re.compile(r"\.[A-Za-z]{1,6}:\d+")
TRACE_MARKERS = ("at ", 'File "', "Traceback")
WORD_PATTERN = re.compile(r"\b[a-z]{3,}\b")

TECHNOLOGY_VOCABULARY = [
    "react",
    "vue",
    "angular",
    "svelte",
    "nextjs",
    "nuxt",
    "node",
    "express",
    "typescript",
    "javascript",
    "python",
    "django",
    "flask",
    "fastapi",
    "java",
    "spring",
    "kotlin",
    "android",
    "ios",
    "swift",
    "flutter",
    "dart",
    "rust",
    "golang",
    "ruby",
    "rails",
    "php",
    "laravel",
    "docker",
    "kubernetes",
    "aws",
    "azure",
    "gcp",
    "firebase",
    "mongodb",
    "postgresql",
    "mysql",
    "sqlite",
    "redis",
    "graphql",
    "webpack",
    "vite",
    "babel",
    "eslint",
    "jest",
    "pytest",
    "websocket",
]

STOPWORDS = frozenset(
    {
        "the", "and", "for", "with", "this", "that", "from", "have", "been",
        "when", "where", "what", "which", "are", "was", "were", "but", "not",
        "you", "your", "can", "could", "would", "should", "will", "there",
        "their", "they", "them", "then", "than", "also", "into", "just",
        "like", "any", "all", "has", "had", "our", "out", "its", "about",
        "after", "before", "some", "more", "most", "only", "other", "such",
        "these", "those", "here", "how", "why", "who", "does", "did", "doing",
        "get", "got", "use", "using", "used", "one", "two", "same", "very",
        "still", "even", "because", "while", "being", "over", "each", "both",
        "see", "now", "way", "let", "please", "thanks", "thank", "hi",
        "hello", "issue", "http", "https", "www", "com",
    }
)


def build_corpus_text(issue: GitHubIssue) -> str:
    """Title, body and comment bodies joined by blank lines."""
    parts = [issue.title, issue.body or ""]
    parts.extend(comment.body for comment in issue.comments)
    return "\n\n".join(part for part in parts if part)


def _unique(values: list[str]) -> list[str]:
    """Deduplicate preserving first-seen order."""
    return list(dict.fromkeys(values))


class SignalExtractor:
    """Turns raw issue text into DiagnosticSignals. Never raises."""

    def __init__(
        self,
        settings: SignalSettings | None = None,
        vocabulary: list[str] | None = None,
    ):
        self.settings = settings or SignalSettings()
        self.vocabulary = vocabulary or TECHNOLOGY_VOCABULARY

    def extract(self, issue: GitHubIssue) -> DiagnosticSignals:
        """Extract signals from an issue including its fetched comments."""
        return self.extract_text(build_corpus_text(issue), issue.label_names)

    def extract_text(
        self, text: str, labels: list[str] | None = None
    ) -> DiagnosticSignals:
        """Extract signals from a prepared corpus text.

        Args:
            text: Concatenated issue text
            labels: Issue label names, used as technology tags

        Returns:
            DiagnosticSignals, empty when text and labels are empty
        """
        text = text or ""
        code_blocks = CODE_BLOCK_PATTERN.findall(text)
        return DiagnosticSignals(
            error_messages=self.extract_errors(text),
            exception_types=self.extract_exception_types(text),
            technologies=self.extract_technologies(text, labels or []),
            keywords=self.extract_keywords(text),
            stack_traces=self.extract_stack_traces(code_blocks),
            code_snippets=[
                block[: self.settings.max_snippet_length]
                for block in code_blocks[: self.settings.max_code_snippets]
            ],
        )

    def extract_errors(self, text: str) -> list[str]:
        errors = []
        for line in text.splitlines():
            match = ERROR_LINE_PATTERN.search(line)
            if match:
                label = match.group("label")
            else:
                match = BRACKETED_ERROR_PATTERN.search(line)
                if not match:
                    continue
                label = "ERROR"

            message = match.group("message").strip().rstrip("`").strip()
            if len(message) <= self.settings.min_error_length:
                continue
            errors.append(f"{label}: {message}"[: self.settings.max_error_length])

        return _unique(errors)

    def extract_exception_types(self, text: str) -> list[str]:
        return _unique(EXCEPTION_TYPE_PATTERN.findall(text))

    def extract_stack_traces(self, code_blocks: list[str]) -> list[str]:
        traces = []
        for block in code_blocks:
            if len(traces) >= self.settings.max_stack_traces:
                break
            if any(marker in block for marker in TRACE_MARKERS) or (
                FILE_LINE_PATTERN.search(block)
            ):
                traces.append(block[: self.settings.max_trace_length])
        return traces

    def extract_technologies(self, text: str, labels: list[str]) -> list[str]:
        technologies = [label.strip().lower() for label in labels if label.strip()]
        lowered = text.lower()
        technologies.extend(tech for tech in self.vocabulary if tech in lowered)
        return _unique(technologies)

    def extract_keywords(self, text: str) -> list[str]:
        """Top words by frequency, ties broken by first occurrence."""
        words = [
            word
            for word in WORD_PATTERN.findall(text.lower())
            if len(word) >= self.settings.min_keyword_length and word not in STOPWORDS
        ]
        counts = Counter(words)
        first_seen = {word: index for index, word in reversed(list(enumerate(words)))}
        ranked = sorted(counts, key=lambda word: (-counts[word], first_seen[word]))
        return ranked[: self.settings.max_keywords]
