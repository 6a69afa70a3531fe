"""SoftPaq identifiers scraped from free-text vendor output.

Used when HPCMSL only offers a simulation (`-WhatIf`) report. Tokens are
matched line by line and kept in encounter order without duplicates.
"""

from __future__ import annotations

import re
from typing import Iterable

from core.config import DEFAULT_SOFTPAQ_PATTERN


def normalize_softpaq_id(value: str) -> str:
    """``SP143521`` / ``143521`` -> ``sp143521``."""

    token = value.strip().lower()
    if token.isdigit():
        token = f"sp{token}"
    return token


def dedupe_ids(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        token = normalize_softpaq_id(value)
        if not token or token in seen:
            continue
        seen.add(token)
        out.append(token)
    return out


def extract_softpaq_ids(text: str, pattern: str = DEFAULT_SOFTPAQ_PATTERN) -> list[str]:
    regex = re.compile(pattern, re.IGNORECASE)
    found: list[str] = []
    for line in text.splitlines():
        found.extend(match.group(0) for match in regex.finditer(line))
    return dedupe_ids(found)
