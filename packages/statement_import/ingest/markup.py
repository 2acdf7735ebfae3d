"""Sanitizing HTML loader and a tiny element tree for statement adapters.

Bank exports are untrusted input. :func:`sanitize_html` builds an
:class:`Element` tree with ``html.parser`` while dropping executable and
embedding content (``<script>``, ``<iframe>``, ``<object>`` ...), inline event
handler attributes (``on*``) and URL attributes using script-capable schemes.
Adapters only ever traverse the sanitized tree.

Selectors support the subset statement adapters need: tag names, ``.class``
chains (``div.a.b``), the descendant combinator (whitespace) and the child
combinator (``>``).
"""

from __future__ import annotations

from typing import TypeAlias

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from html.parser import HTMLParser

# Elements removed together with everything inside them.
DROPPED_ELEMENTS = frozenset(
    {
        "applet",
        "base",
        "embed",
        "frame",
        "frameset",
        "iframe",
        "link",
        "meta",
        "noscript",
        "object",
        "script",
        "style",
        "template",
    }
)

VOID_ELEMENTS = frozenset(
    {
        "area",
        "br",
        "col",
        "hr",
        "img",
        "input",
        "source",
        "track",
        "wbr",
    }
)

URL_ATTRIBUTES = frozenset({"href", "src", "action", "formaction", "xlink:href"})
_UNSAFE_URL_RE = re.compile(r"^\s*(javascript|vbscript|data)\s*:", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")


@dataclass(slots=True, eq=False)
class Element:
    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    children: list[Element | str] = field(default_factory=list)
    parent: Element | None = field(default=None, repr=False)

    @property
    def classes(self) -> frozenset[str]:
        return frozenset(self.attrs.get("class", "").split())

    @property
    def dataset(self) -> dict[str, str]:
        """``data-*`` attributes keyed without the prefix (``data-category`` → ``category``)."""
        return {k[5:]: v for k, v in self.attrs.items() if k.startswith("data-")}

    @property
    def element_children(self) -> list[Element]:
        return [c for c in self.children if isinstance(c, Element)]

    def text_content(self) -> str:
        parts: list[str] = []
        stack: list[Element | str] = [self]
        while stack:
            node = stack.pop()
            if isinstance(node, str):
                parts.append(node)
            else:
                stack.extend(reversed(node.children))
        return "".join(parts)

    def text(self) -> str:
        """Whitespace-collapsed, trimmed text content."""
        return _WS_RE.sub(" ", self.text_content()).strip()

    def iter_descendants(self) -> Iterator[Element]:
        """Yield descendant elements in document (pre-)order."""
        stack = list(reversed(self.element_children))
        while stack:
            el = stack.pop()
            yield el
            stack.extend(reversed(el.element_children))

    def select(self, selector: str) -> list[Element]:
        compiled = _compile(selector)
        return [el for el in self.iter_descendants() if _matches(el, compiled, self)]

    def select_one(self, selector: str) -> Element | None:
        compiled = _compile(selector)
        for el in self.iter_descendants():
            if _matches(el, compiled, self):
                return el
        return None


# ---------------------------------------------------------------------------
# Sanitizing tree builder
# ---------------------------------------------------------------------------


def _safe_attrs(attrs: list[tuple[str, str | None]]) -> dict[str, str]:
    out: dict[str, str] = {}
    for name, value in attrs:
        key = name.lower()
        if key.startswith("on"):
            continue
        val = value or ""
        if key in URL_ATTRIBUTES and _UNSAFE_URL_RE.match(val):
            continue
        if key == "srcdoc":
            continue
        out[key] = val
    return out


class _SanitizingTreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.root = Element("#document")
        self._stack: list[Element] = [self.root]
        # Set while inside a dropped element; content is discarded meanwhile.
        self._dropping_tag: str | None = None
        # Tags opened inside the dropped element, so their end tags stay inside it.
        self._dropped_open: list[str] = []
        self.removed = 0

    def _end_drop(self) -> None:
        self._dropping_tag = None
        self._dropped_open.clear()

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        t = tag.lower()
        if self._dropping_tag is not None:
            if t not in VOID_ELEMENTS:
                self._dropped_open.append(t)
            return
        if t in DROPPED_ELEMENTS:
            self.removed += 1
            if t not in {"base", "link", "meta", "embed", "frame"}:
                self._dropping_tag = t
            return
        el = Element(t, _safe_attrs(attrs), parent=self._stack[-1])
        self._stack[-1].children.append(el)
        if t not in VOID_ELEMENTS:
            self._stack.append(el)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        t = tag.lower()
        if self._dropping_tag is not None:
            return
        if t in DROPPED_ELEMENTS:
            self.removed += 1
            return
        self._stack[-1].children.append(Element(t, _safe_attrs(attrs), parent=self._stack[-1]))

    def _open_depth(self, tag: str) -> int | None:
        for depth in range(len(self._stack) - 1, 0, -1):
            if self._stack[depth].tag == tag:
                return depth
        return None

    def handle_endtag(self, tag: str) -> None:
        t = tag.lower()
        if self._dropping_tag is not None:
            if t in self._dropped_open:
                last = len(self._dropped_open) - 1 - self._dropped_open[::-1].index(t)
                del self._dropped_open[last:]
                return
            if t == self._dropping_tag:
                self._end_drop()
                return
            if self._open_depth(t) is None:
                return
            # The dropped element was never closed: its parent's end tag ends it.
            self._end_drop()
        # Pop up to the matching open element; stray end tags are ignored.
        depth = self._open_depth(t)
        if depth is not None:
            del self._stack[depth:]

    def handle_data(self, data: str) -> None:
        if self._dropping_tag is not None:
            return
        self._stack[-1].children.append(data)


def sanitize_html(document: str) -> Element:
    """Parse ``document`` into a sanitized :class:`Element` tree (root ``#document``)."""

    builder = _SanitizingTreeBuilder()
    builder.feed(document)
    builder.close()
    return builder.root


# ---------------------------------------------------------------------------
# Selector subset
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _Compound:
    tag: str | None
    classes: frozenset[str]


# (combinator to the *previous* compound, compound); the first combinator is "".
_Compiled: TypeAlias = tuple[tuple[str, _Compound], ...]

_COMPOUND_RE = re.compile(r"^(?P<tag>[a-zA-Z][a-zA-Z0-9-]*|\*)?(?P<classes>(?:\.[\w-]+)*)$")
_compile_cache: dict[str, _Compiled] = {}


def _parse_compound(token: str) -> _Compound:
    m = _COMPOUND_RE.match(token)
    if m is None or not token:
        raise ValueError(f"Unsupported selector token: {token!r}")
    tag = m.group("tag")
    classes = frozenset(c for c in m.group("classes").split(".") if c)
    return _Compound(tag=None if tag in (None, "*") else tag.lower(), classes=classes)


def _compile(selector: str) -> _Compiled:
    cached = _compile_cache.get(selector)
    if cached is not None:
        return cached
    tokens = selector.replace(">", " > ").split()
    if not tokens:
        raise ValueError("Empty selector")
    steps: list[tuple[str, _Compound]] = []
    combinator = ""
    for tok in tokens:
        if tok == ">":
            if not steps or combinator == ">":
                raise ValueError(f"Misplaced child combinator in {selector!r}")
            combinator = ">"
            continue
        steps.append((combinator if steps else "", _parse_compound(tok)))
        combinator = " "
    if combinator == ">":
        raise ValueError(f"Selector ends with a combinator: {selector!r}")
    compiled = tuple(steps)
    _compile_cache[selector] = compiled
    return compiled


def _matches_compound(el: Element, compound: _Compound) -> bool:
    if compound.tag is not None and el.tag != compound.tag:
        return False
    return compound.classes <= el.classes


def _matches(el: Element, compiled: _Compiled, scope: Element) -> bool:
    """Right-to-left match of ``compiled`` against ``el`` within ``scope``."""

    def _match_from(node: Element, idx: int) -> bool:
        comb, compound = compiled[idx]
        if not _matches_compound(node, compound):
            return False
        if idx == 0:
            return True
        # ``comb`` relates compiled[idx - 1] (ancestor side) to this node.
        parent = node.parent
        if comb == ">":
            return parent is not None and parent is not scope and _match_from(parent, idx - 1)
        while parent is not None and parent is not scope:
            if _match_from(parent, idx - 1):
                return True
            parent = parent.parent
        return False

    return _match_from(el, len(compiled) - 1)


__all__ = ["Element", "sanitize_html"]
