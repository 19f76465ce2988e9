"""
Incremental re-translation decisions.

Each source key is classified once per run as ``translate`` or ``keep`` by
comparing the length of its existing translation with the source length.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

TRANSLATE = "translate"
KEEP = "keep"

# Existing translations shorter than this share of the source (in percent)
# are treated as stubs or truncated earlier attempts.
RETRANSLATE_RATIO_THRESHOLD = 40


@dataclass(frozen=True)
class TranslationRecord:
    key: str
    source_text: str
    existing_translation: Optional[str]
    decision: str
    ratio: Optional[float] = None

    @property
    def needs_translation(self) -> bool:
        return self.decision == TRANSLATE


def decide_key(key: str, source_text: str, existing: Optional[str]) -> TranslationRecord:
    """Classify one key."""
    if len(source_text) == 0:
        # Nothing to translate; the ratio is undefined
        return TranslationRecord(key, source_text, existing, KEEP)

    if existing is None:
        return TranslationRecord(key, source_text, existing, TRANSLATE)

    ratio = len(existing) / len(source_text) * 100
    decision = TRANSLATE if ratio < RETRANSLATE_RATIO_THRESHOLD else KEEP
    return TranslationRecord(key, source_text, existing, decision, ratio)


def decide(source: Mapping[str, str], existing: Optional[Mapping[str, str]]) -> List[TranslationRecord]:
    """Classify every source key, preserving source order."""
    existing = existing or {}
    records = []
    for key, text in source.items():
        prior = existing.get(key)
        if prior is not None and not isinstance(prior, str):
            prior = None
        records.append(decide_key(key, text, prior))
    return records


def keys_to_translate(records: List[TranslationRecord]) -> Dict[str, str]:
    """Ordered key -> source text mapping of the records marked ``translate``."""
    return {r.key: r.source_text for r in records if r.needs_translation}


def empty_source_keys(records: List[TranslationRecord]) -> Dict[str, str]:
    """Keys with an empty source and no prior output value; they are copied as ``""``."""
    return {r.key: "" for r in records if r.source_text == "" and r.existing_translation is None}
