"""
Translation module - Core translation functionality

This module provides:
- RunContext: run-scoped credential cursor, error counter, cancellation flag
- Decision engine for incremental re-translation
- Character-budget batching and model output parsing
- Bounded-concurrency batch scheduler
- Quality validation of translated strings
- Progress event types

The run driver lives in lingobatch.translation.manager and is imported
from there directly (it depends on the resource adapters and the backend
client, which themselves import from this package).
"""

from lingobatch.translation.context import RunContext
from lingobatch.translation.decision import (
    KEEP,
    TRANSLATE,
    TranslationRecord,
    decide,
    keys_to_translate,
)
from lingobatch.translation.progress import ProgressEvent, RunSummary
from lingobatch.translation.utils import batch_strings, flatten_json, set_nested_value
from lingobatch.translation.validator import (
    ValidationResult,
    apply_glossary,
    extract_html_tags,
    extract_placeholders,
    validate_file,
    validate_translation,
)
from lingobatch.translation.scheduler import merge_batch_result, run_batches
