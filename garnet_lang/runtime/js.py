"""JavaScript literal rendering shared by the generator and the payload codec."""
from __future__ import annotations

import json


def js_string(value: str) -> str:
    """Quote *value* as a JavaScript string literal.

    Non-ASCII characters, line/paragraph separators and control characters
    are escaped, and ``</`` is written as ``<\\/`` so the literal can sit
    inside a ``<script>`` element.
    """
    return json.dumps(value, ensure_ascii=True).replace("</", "<\\/")


def js_number(value: int | float) -> str:
    if isinstance(value, float):
        text = repr(value)
        return text[:-2] if text.endswith(".0") else text
    return str(value)
