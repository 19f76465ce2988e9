"""
Translation Validation Module

Contains the quality scorer for source/translation pairs:
- Emptiness and identity checks
- Length ratio checks
- Placeholder preservation
- HTML tag count drift

Validation never raises and never touches the network; problems are
reported on the returned ValidationResult.
"""

import re
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Mapping, Optional

from lingobatch.logger import get_logger
import lingobatch.language_codes as lc

logger = get_logger(__name__)

ERROR_PENALTY = 30
WARNING_PENALTY = 10
MIN_LENGTH_RATIO = 0.5
MAX_LENGTH_RATIO = 2.0

PLACEHOLDER_PATTERNS = [
    re.compile(r':(\w+)'),          # Laravel :placeholder
    re.compile(r'\{(\w+)\}'),       # {placeholder}
    re.compile(r'%s|%d|%\w+'),      # printf style %s, %d, %name
    re.compile(r'\$\w+'),           # $variable
]

HTML_TAG_PATTERN = re.compile(r'</?[\w\s="/.\':;#-]+>', re.IGNORECASE)


@dataclass
class ValidationResult:
    valid: bool
    score: int
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    # translated / original length; None when the original is empty
    ratio: Optional[float] = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def extract_placeholders(text: str) -> List[str]:
    """
    Extract placeholder tokens from text, de-duplicated in first-seen order.

    Example:
        >>> extract_placeholders("Hello :name, you have {count} items and $price total")
        [':name', '{count}', '$price']
    """
    placeholders: List[str] = []
    for pattern in PLACEHOLDER_PATTERNS:
        for match in pattern.finditer(text or ""):
            token = match.group(0)
            if token not in placeholders:
                placeholders.append(token)
    return placeholders


def extract_html_tags(text: str) -> List[str]:
    """Return every opening/closing HTML-like tag in text."""
    return HTML_TAG_PATTERN.findall(text or "")


def validate_translation(
    original: str,
    translated: str,
    language: str,
    source_language: str = "en",
) -> ValidationResult:
    """
    Score one source/translation pair.

    Errors (placeholder loss or gain, emptiness) cost 30 points and make the
    result invalid; warnings (identity, length, tag drift) cost 10 points.

    Args:
        original: Source text
        translated: Translated text
        language: Target language code
        source_language: Language of the source text

    Returns:
        ValidationResult with score clamped to 0..100
    """
    warnings: List[str] = []
    errors: List[str] = []

    if not translated or not translated.strip():
        errors.append("Translation is empty")
        return ValidationResult(valid=False, score=0, warnings=warnings, errors=errors, ratio=0.0)

    original = original or ""

    if translated == original and not lc.languages_match(language, source_language, strict=True):
        warnings.append("Translation identical to original")

    ratio: Optional[float] = None
    if original:
        ratio = len(translated) / len(original)
        if ratio < MIN_LENGTH_RATIO:
            warnings.append(f"Translation too short ({round(ratio * 100)}% of original)")
        elif ratio > MAX_LENGTH_RATIO:
            warnings.append(f"Translation too long ({round(ratio * 100)}% of original)")
    else:
        # Empty original: any text counts as too long
        warnings.append("Translation too long (original is empty)")

    original_placeholders = extract_placeholders(original)
    translated_placeholders = extract_placeholders(translated)

    for placeholder in original_placeholders:
        if placeholder not in translated_placeholders:
            errors.append(f"Missing placeholder: {placeholder}")

    for placeholder in translated_placeholders:
        if placeholder not in original_placeholders:
            errors.append(f"Extra placeholder: {placeholder}")

    original_tags = extract_html_tags(original)
    translated_tags = extract_html_tags(translated)
    if len(original_tags) != len(translated_tags):
        warnings.append(
            f"HTML tag count mismatch (original: {len(original_tags)}, "
            f"translated: {len(translated_tags)})"
        )

    score = max(0, 100 - ERROR_PENALTY * len(errors) - WARNING_PENALTY * len(warnings))

    return ValidationResult(
        valid=not errors,
        score=score,
        warnings=warnings,
        errors=errors,
        ratio=round(ratio, 2) if ratio is not None else None,
    )


def validate_file(
    source: Mapping[str, str],
    translated: Mapping[str, Any],
    language: str,
    source_language: str = "en",
) -> Dict[str, Any]:
    """
    Score every key of a translated file against its source.

    Keys missing from ``translated`` are scored as empty translations.

    Returns:
        Dict with ``results`` (key -> result dict), ``average_score``,
        ``invalid_keys`` and ``total``.
    """
    results: Dict[str, Dict[str, Any]] = {}
    invalid_keys: List[str] = []
    total_score = 0

    for key, original in source.items():
        value = translated.get(key)
        result = validate_translation(
            original,
            value if isinstance(value, str) else "",
            language,
            source_language=source_language,
        )
        results[key] = result.to_dict()
        total_score += result.score
        if not result.valid:
            invalid_keys.append(key)

    average = round(total_score / len(source), 1) if source else 100.0
    if invalid_keys:
        logger.debug(f"{len(invalid_keys)} invalid translations for {language}")

    return {
        "results": results,
        "average_score": average,
        "invalid_keys": invalid_keys,
        "total": len(source),
    }


def apply_glossary(text: str, glossary: Optional[Mapping[str, Any]], language: str) -> str:
    """
    Force configured term translations.

    ``glossary["force"]`` maps a source term to ``{language: translation}``.
    Matching is whole-word and case-insensitive.
    """
    if not glossary or not text:
        return text

    forced = glossary.get("force")
    if not isinstance(forced, Mapping):
        return text

    for term, translations in forced.items():
        if not isinstance(translations, Mapping):
            continue
        replacement = translations.get(language)
        if replacement:
            pattern = re.compile(rf'\b{re.escape(term)}\b', re.IGNORECASE)
            text = pattern.sub(lambda _m: replacement, text)
    return text
