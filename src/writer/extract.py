"""DOM extraction: cleans raw HTML and applies per-domain extraction rules."""

from __future__ import annotations

import logging
from typing import Iterable, Literal

from bs4 import BeautifulSoup, Tag

from src.writer.models import ExtractedContent, ExtractionRule

logger = logging.getLogger(__name__)

FallbackMode = Literal["text", "html"]

# Elements that carry no readable content.
_STRIP_TAGS = ("script", "style")


class HtmlParseError(Exception):
    """Raised when raw page content cannot be turned into a document."""


class HtmlDocument:
    """Parsed HTML tree with the small query surface the extractor needs."""

    def __init__(self, html: str | bytes) -> None:
        if isinstance(html, bytes):
            try:
                html = html.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise HtmlParseError(f"raw HTML is not valid UTF-8: {exc}") from exc
        self._soup = BeautifulSoup(html, "lxml")

    @property
    def title(self) -> str:
        node = self._soup.title
        return node.get_text() if node is not None else ""

    @property
    def body(self) -> Tag:
        """The ``<body>`` element, or the whole document when there is none."""
        return self._soup.body or self._soup

    @property
    def root(self) -> Tag:
        return self._soup

    def select(self, selector: str) -> list[Tag]:
        return list(self._soup.select(selector))

    @staticmethod
    def outermost(nodes: list[Tag]) -> list[Tag]:
        """Drop nodes that sit inside another node of *nodes*."""
        ids = {id(node) for node in nodes}
        return [node for node in nodes if not any(id(parent) in ids for parent in node.parents)]

    def remove_matching(self, selector: str, within: Iterable[Tag] | None = None) -> int:
        """Detach every element matching *selector*, optionally only below *within*.

        Returns the number of elements removed.
        """
        scopes = list(within) if within is not None else [self._soup]
        removed = 0
        for scope in scopes:
            for node in scope.select(selector):
                node.extract()
                removed += 1
        return removed

    def clean(self) -> None:
        """Drop scripts, styles, inline style attributes and inline image data."""
        for node in self._soup.find_all(_STRIP_TAGS):
            node.decompose()
        for node in self._soup.find_all(style=True):
            del node["style"]
        for img in self._soup.select('img[src^="data:"]'):
            del img["src"]

    @staticmethod
    def text_of(node: Tag) -> str:
        return node.get_text()

    @staticmethod
    def inner_html_of(node: Tag) -> str:
        return node.decode_contents()


def _apply_css_rule(document: HtmlDocument, rule: ExtractionRule) -> str | None:
    """Return the inner HTML selected by *rule*, or ``None`` when nothing matched."""
    if not rule.selector:
        logger.warning("css rule without selector, skipping", extra={"rule": rule.__dict__})
        return None

    selected = document.outermost(document.select(rule.selector))
    if not selected:
        logger.info("no element found for selector", extra={"selector": rule.selector})
        return None

    if rule.exclude:
        removed = document.remove_matching(rule.exclude, within=selected)
        logger.debug(
            "excluded elements from selection",
            extra={"selector": rule.selector, "exclude": rule.exclude, "removed": removed},
        )

    return "\n".join(document.inner_html_of(node) for node in selected)


def extract_content(
    html: str | bytes,
    rules: list[ExtractionRule],
    *,
    fallback_mode: FallbackMode = "text",
) -> ExtractedContent:
    """Extract the title and content fragments of a raw HTML page.

    Without rules a single fragment holding the body text (or the body inner
    HTML when *fallback_mode* is ``"html"``) is returned. With rules, each
    matching ``css`` rule contributes one fragment in rule order; rules that
    match nothing, have an unknown type or raise are skipped.
    """
    document = HtmlDocument(html)
    document.clean()
    title = document.title

    if not rules:
        body = document.body
        fragment = document.inner_html_of(body) if fallback_mode == "html" else document.text_of(body)
        return ExtractedContent(title=title, fragments=[fragment])

    fragments: list[str] = []
    for rule in rules:
        if rule.type != "css":
            continue
        try:
            logger.debug("processing css rule", extra={"rule": rule.__dict__})
            fragment = _apply_css_rule(document, rule)
        except Exception:
            logger.warning("failed to process rule", extra={"rule": rule.__dict__}, exc_info=True)
            continue
        if fragment is not None:
            logger.debug("selected html", extra={"selector": rule.selector, "length": len(fragment)})
            fragments.append(fragment)

    logger.info(
        "processed html",
        extra={"segments": len(fragments), "total_length": sum(len(f) for f in fragments)},
    )
    return ExtractedContent(title=title, fragments=fragments)


def strip_to_text(html: str | bytes) -> tuple[str, str]:
    """Return ``(title, text)`` of the whole cleaned document."""
    document = HtmlDocument(html)
    document.clean()
    return document.title, document.text_of(document.root)
