"""
Line-oriented CSV tokenizer for broker statement exports.
"""
from typing import List

QUOTE_CHARS = "\"'"


def tokenize_line(line: str) -> List[str]:
    """
    Split one CSV line on commas that are outside double-quoted spans.

    Each field is trimmed and stripped of surrounding quotes. Trailing empty
    fields are kept. Doubled quotes ("") are not treated as an escaped quote.

    Examples:
        >>> tokenize_line('a,"b,c",d')
        ['a', 'b,c', 'd']

        >>> tokenize_line('a,b,,')
        ['a', 'b', '', '']
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
            current.append(char)
        elif char == ',' and not in_quotes:
            fields.append(_clean_field(''.join(current)))
            current = []
        else:
            current.append(char)

    fields.append(_clean_field(''.join(current)))
    return fields


def _clean_field(raw: str) -> str:
    return raw.strip().strip(QUOTE_CHARS).strip()


def split_lines(text: str) -> List[str]:
    """Split a document into non-blank lines, tolerating CRLF and a leading BOM."""
    text = text.lstrip('\ufeff')
    return [line for line in text.splitlines() if line.strip()]
