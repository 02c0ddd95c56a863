"""Entity decoding for text extracted from feed markup.

Feed fields arrive with HTML/XML character references and CDATA wrappers still
in place. ``decode_entities`` unwraps every CDATA section and then replaces
named and numeric references in a single pass, so ``&amp;lt;`` decodes to
``&lt;`` and not to ``<``.
"""

import re

# Named entities recognised by the decoder. Anything else is left untouched.
NAMED_ENTITIES = {
    "lt": "<",
    "gt": ">",
    "amp": "&",
    "quot": '"',
    "apos": "'",
    "nbsp": "\u00a0",
    "copy": "©",
    "reg": "®",
    "trade": "™",
    "mdash": "—",
    "ndash": "–",
    "lsquo": "‘",
    "rsquo": "’",
    "ldquo": "“",
    "rdquo": "”",
    "bull": "•",
    "hellip": "…",
}

_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
_ENTITY_RE = re.compile(r"&(?:#(\d+)|#[xX]([0-9a-fA-F]+)|([A-Za-z][A-Za-z0-9]*));")

_MAX_CODE_POINT = 0x10FFFF


def strip_cdata(text: str) -> str:
    """Remove every CDATA wrapper, keeping the enclosed text verbatim."""
    if "<![CDATA[" not in text:
        return text
    return _CDATA_RE.sub(lambda m: m.group(1), text)


def _code_point_to_char(digits: str, base: int):
    digits = digits.lstrip("0") or "0"
    # Longer digit strings are out of range whatever their value.
    if len(digits) > 8:
        return None
    code = int(digits, base)
    if code > _MAX_CODE_POINT or 0xD800 <= code <= 0xDFFF:
        return None
    return chr(code)


def _replace_entity(match: "re.Match[str]") -> str:
    decimal, hexadecimal, name = match.groups()
    if name is not None:
        return NAMED_ENTITIES.get(name, match.group(0))
    if decimal is not None:
        char = _code_point_to_char(decimal, 10)
    else:
        char = _code_point_to_char(hexadecimal, 16)
    return char if char is not None else match.group(0)


def decode_entities(text: str) -> str:
    """Decode CDATA sections and character references in ``text``.

    Never raises: unknown names and invalid code points are kept as written.

    Args:
        text: Raw text fragment taken from feed markup

    Returns:
        Text with CDATA wrappers removed and entities replaced
    """
    text = strip_cdata(text)
    if "&" not in text:
        return text
    return _ENTITY_RE.sub(_replace_entity, text)
