"""
Prompt templates for the translation backend.

Single-text mode asks for ``{"translated": "..."}``; batch mode asks for a
JSON object with exactly the keys of the input batch.
"""

import json
from typing import Mapping, Optional

from lingobatch.translation.utils import sanitize_input

DEFAULT_PRODUCT_CONTEXT = (
    "You are translating UI text and descriptions for a software product. "
    "The content includes interface labels, messages and descriptions."
)

SINGLE_TEXT_PROMPT = """Respond ONLY with valid JSON in this format: {{"translated": "..."}}.
Ensure all double quotes in the translated text are properly escaped (e.g., use \\"). Do not include Markdown, backticks, explanation, or extra text.
This is important.

{context}

Translate the following text to {language_name}.
Do NOT translate brand names, placeholders such as :name, {{count}}, %s or $price, or HTML tags.{preserve_section}

Text: "{text}\""""

BATCH_PROMPT = """{context}

Translate each value in the following JSON object to {language_name}.
Do NOT translate brand names, placeholders such as :name, {{count}}, %s or $price, or HTML tags, and DO NOT CUT THE TEXT, a full translation is required.{preserve_section}

Respond ONLY with valid JSON in the SAME structure, with exactly the same keys. Example format:
{{
  "key1": "value",
  "key2": "value"
}}

Input:
{batch_json}
"""


def _preserve_section(glossary: Optional[Mapping]) -> str:
    terms = (glossary or {}).get("preserve") or []
    terms = [t for t in terms if isinstance(t, str) and t.strip()]
    if not terms:
        return ""
    return "\nKeep these terms exactly as written: " + ", ".join(terms) + "."


def build_single_text_prompt(text: str, language_name: str,
                             glossary: Optional[Mapping] = None,
                             context: str = DEFAULT_PRODUCT_CONTEXT) -> str:
    return SINGLE_TEXT_PROMPT.format(
        context=context,
        language_name=language_name,
        preserve_section=_preserve_section(glossary),
        text=sanitize_input(text),
    )


def build_batch_prompt(batch: Mapping[str, str], language_name: str,
                       glossary: Optional[Mapping] = None,
                       context: str = DEFAULT_PRODUCT_CONTEXT) -> str:
    return BATCH_PROMPT.format(
        context=context,
        language_name=language_name,
        preserve_section=_preserve_section(glossary),
        batch_json=json.dumps(dict(batch), ensure_ascii=False, indent=2),
    )
