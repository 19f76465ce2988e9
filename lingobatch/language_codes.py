"""
Language code mappings and utilities.

Codes follow the locale directory naming used by browser-extension and
Laravel style projects: a lower-case ISO 639-1 code, optionally followed by
an underscore and a region (``pt_BR``, ``zh_CN``, ``es_419``).

The display name is what the backend sees in the prompt, so an unknown code
is passed through unchanged rather than rejected.
"""

from typing import Dict, List, Optional, Union

LANGUAGE_NAMES = {
    'ar': 'Arabic',
    'am': 'Amharic',
    'bg': 'Bulgarian',
    'bn': 'Bengali',
    'ca': 'Catalan',
    'cs': 'Czech',
    'da': 'Danish',
    'de': 'German',
    'el': 'Greek',
    'en': 'English',
    'en_AU': 'English (Australia)',
    'en_GB': 'English (Great Britain)',
    'en_US': 'English (USA)',
    'es': 'Spanish',
    'es_419': 'Spanish (Latin America and Caribbean)',
    'et': 'Estonian',
    'fa': 'Persian',
    'fi': 'Finnish',
    'fil': 'Filipino',
    'fr': 'French',
    'gu': 'Gujarati',
    'he': 'Hebrew',
    'hi': 'Hindi',
    'hr': 'Croatian',
    'hu': 'Hungarian',
    'id': 'Indonesian',
    'it': 'Italian',
    'ja': 'Japanese',
    'kn': 'Kannada',
    'ko': 'Korean',
    'lt': 'Lithuanian',
    'lv': 'Latvian',
    'ml': 'Malayalam',
    'mr': 'Marathi',
    'ms': 'Malay',
    'nl': 'Dutch',
    'no': 'Norwegian',
    'pl': 'Polish',
    'pt_BR': 'Portuguese (Brazil)',
    'pt_PT': 'Portuguese (Portugal)',
    'ro': 'Romanian',
    'ru': 'Russian',
    'sk': 'Slovak',
    'sl': 'Slovenian',
    'sr': 'Serbian',
    'sv': 'Swedish',
    'sw': 'Swahili',
    'ta': 'Tamil',
    'te': 'Telugu',
    'th': 'Thai',
    'tr': 'Turkish',
    'uk': 'Ukrainian',
    'vi': 'Vietnamese',
    'zh_CN': 'Chinese (China)',
    'zh_TW': 'Chinese (Taiwan)',
}

# Case-insensitive lookup; run languages are lower-cased on input
_NAMES_BY_LOWER = {code.lower(): name for code, name in LANGUAGE_NAMES.items()}


def normalize_code(code: str) -> str:
    """Lower-case a code and use ``_`` as the region separator."""
    return code.strip().replace('-', '_').lower()


def get_language_name(code: str) -> str:
    """
    Get the display name for a language code.

    Examples:
        >>> get_language_name('uk')
        'Ukrainian'
        >>> get_language_name('pt-br')
        'Portuguese (Brazil)'
        >>> get_language_name('xx')
        'xx'
    """
    if not code:
        return code
    return _NAMES_BY_LOWER.get(normalize_code(code), code)


def languages_match(code1: Optional[str], code2: Optional[str], strict: bool = False) -> bool:
    """
    Check whether two codes name the same language.

    Non-strict comparison ignores the region, so ``en`` matches ``en_US``.
    """
    if not code1 or not code2:
        return False
    a, b = normalize_code(code1), normalize_code(code2)
    if strict:
        return a == b
    return a.split('_')[0] == b.split('_')[0]


def parse_language_list(languages: Union[str, List[str], None]) -> List[str]:
    """
    Split a comma separated string (or list) into trimmed, lower-cased codes.

    Duplicates are dropped, first occurrence wins.
    """
    if languages is None:
        return []
    items = languages.split(',') if isinstance(languages, str) else languages
    result: List[str] = []
    for item in items:
        if not isinstance(item, str):
            continue
        code = item.strip().lower()
        if code and code not in result:
            result.append(code)
    return result


def get_all_language_codes() -> Dict[str, str]:
    """
    Get all known language codes.

    Returns:
        Dict mapping code to language name
    """
    return LANGUAGE_NAMES.copy()
