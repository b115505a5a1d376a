"""Reference identifier grammar: TYPE-XXX-999 (e.g. PRD-MAN-024)."""
from __future__ import annotations

import re
from typing import NamedTuple, Optional

from . import config

_PATTERN = re.compile(config.REFERENCE_ID_PATTERN, re.ASCII)


class ParsedReferenceId(NamedTuple):
    prefix: str
    district: str
    number: int


def normalize_query(query: Optional[str]) -> str:
    return (query or "").strip().upper()


def parse_reference_id(value: Optional[str]) -> Optional[ParsedReferenceId]:
    match = _PATTERN.fullmatch(normalize_query(value))
    if not match:
        return None
    return ParsedReferenceId(match.group(1), match.group(2), int(match.group(3)))


def is_reference_id(query: Optional[str]) -> bool:
    return _PATTERN.fullmatch(normalize_query(query)) is not None


def entity_type_for(reference_id: str) -> Optional[str]:
    parsed = parse_reference_id(reference_id)
    if parsed is None:
        return None
    return config.REFERENCE_PREFIX_TYPES[parsed.prefix]


def reference_id_path(reference_id: str) -> str:
    entity_type = entity_type_for(reference_id)
    if not entity_type:
        return "/"
    return f"/{entity_type}/{normalize_query(reference_id)}"
