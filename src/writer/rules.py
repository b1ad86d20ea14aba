"""Extraction rule parsing and domain key normalisation."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import urlparse

from src.writer.models import ExtractionRule

logger = logging.getLogger(__name__)

DOMAIN_KEY_PREFIX = "domain:"


def normalize_domain(hostname: str) -> str:
    """Lowercase *hostname* and strip a leading ``www.``."""
    host = hostname.strip().lower()
    if host.startswith("www."):
        host = host[len("www."):]
    return host


def domain_key(url_or_host: str) -> str:
    """Return the rule store key (``domain:<host>``) for a URL or bare hostname."""
    hostname = urlparse(url_or_host).hostname if "://" in url_or_host else url_or_host
    return f"{DOMAIN_KEY_PREFIX}{normalize_domain(hostname or '')}"


def parse_rules(raw: str | bytes | None) -> list[ExtractionRule]:
    """Parse a serialized rule document ``{"rules": [...]}`` into rules.

    Entries that are not objects are dropped. Malformed JSON raises
    ``json.JSONDecodeError`` so the caller can treat it as a store fault.
    """
    if not raw:
        return []

    document: Any = json.loads(raw)
    entries = document.get("rules") if isinstance(document, dict) else None
    if not isinstance(entries, list):
        return []

    rules: list[ExtractionRule] = []
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning("ignoring malformed rule entry", extra={"entry": repr(entry)[:200]})
            continue
        rules.append(
            ExtractionRule(
                type=str(entry.get("type", "")),
                selector=str(entry.get("selector") or ""),
                exclude=entry.get("exclude") or None,
            )
        )
    return rules
