"""Output sanitizing and PII redaction for tool results.

Every text block a tool returns passes through ``OutputFilter.sanitize`` and
then ``OutputFilter.redact`` before it reaches the client.
"""
import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from .config import OUTPUT_MAX_LENGTH, REDACTION_PLACEHOLDER

_HTML_TAG_RE = re.compile(r"<[^>]+>")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_TRAILING_SPACE_RE = re.compile(r"[ \t]+$", re.MULTILINE)
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def _luhn_valid(number: str) -> bool:
    digits = [int(d) for d in number if d.isdigit()]
    checksum = 0
    for i, digit in enumerate(reversed(digits)):
        if i % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        checksum += digit
    return checksum % 10 == 0


def _pesel_valid(number: str) -> bool:
    weights = (1, 3, 7, 9, 1, 3, 7, 9, 1, 3)
    total = sum(int(d) * w for d, w in zip(number[:10], weights))
    return (10 - total % 10) % 10 == int(number[10])


@dataclass
class PIIPattern:
    kind: str
    regex: re.Pattern
    validator: Optional[Callable[[str], bool]] = None


# Order matters: longer structured numbers go before shorter ones
DEFAULT_PII_PATTERNS = [
    PIIPattern("credit_card", re.compile(r"\b(?:\d{4}[ -]){3}\d{4}\b|\b\d{16}\b"), _luhn_valid),
    PIIPattern("bank_account", re.compile(r"\b[A-Z]{2}\d{2}(?: ?[A-Z0-9]{4}){3,7}(?: ?[A-Z0-9]{1,4})?\b")),
    PIIPattern("ssn", re.compile(r"\b\d{3}-\d{2}-\d{4}\b")),
    PIIPattern("pesel", re.compile(r"\b\d{11}\b"), _pesel_valid),
    PIIPattern("polish_phone", re.compile(r"\+48[ -]?\d{3}[ -]?\d{3}[ -]?\d{3}\b")),
    PIIPattern("phone", re.compile(r"\+\d{1,3}[ -]\d{2,4}[ -]\d{3}[ -]\d{3,4}\b|\(\d{3}\) ?\d{3}-\d{4}\b|\b\d{3}-\d{3}-\d{4}\b")),
    PIIPattern("polish_id_card", re.compile(r"\b[A-Z]{3}\d{6}\b")),
    PIIPattern("polish_passport", re.compile(r"\b[A-Z]{2}\d{7}\b")),
]

EMAIL_PATTERN = PIIPattern("email", re.compile(r"\b[\w.+-]+@[\w-]+\.[\w.-]+\b"))


@dataclass
class RedactionResult:
    text: str
    detected_kinds: list[str] = field(default_factory=list)


class OutputFilter:
    """Cleans tool output text and redacts personal data."""

    def __init__(
        self,
        max_length: int = OUTPUT_MAX_LENGTH,
        placeholder: str = REDACTION_PLACEHOLDER,
        redact_emails: bool = False,
        patterns: Optional[list[PIIPattern]] = None,
    ):
        self.max_length = max_length
        self.placeholder = placeholder
        self.patterns = list(patterns if patterns is not None else DEFAULT_PII_PATTERNS)
        if redact_emails:
            self.patterns.append(EMAIL_PATTERN)

    def sanitize(self, text: str) -> str:
        """Remove HTML tags and control characters, tidy whitespace, cap length."""
        text = _HTML_TAG_RE.sub("", text)
        text = _CONTROL_CHARS_RE.sub("", text)
        text = _TRAILING_SPACE_RE.sub("", text)
        text = _BLANK_LINES_RE.sub("\n\n", text)
        if len(text) > self.max_length:
            text = text[: self.max_length] + "\n... (truncated)"
        return text

    def redact(self, text: str) -> RedactionResult:
        """Replace personal data with the placeholder."""
        detected: list[str] = []

        for pattern in self.patterns:
            def replace(match: re.Match, pattern: PIIPattern = pattern) -> str:
                if pattern.validator and not pattern.validator(match.group(0)):
                    return match.group(0)
                detected.append(pattern.kind)
                return self.placeholder

            text = pattern.regex.sub(replace, text)

        return RedactionResult(text=text, detected_kinds=sorted(set(detected)))
