"""Combines per-dimension critical CSS fragments into one stylesheet."""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Sequence, Tuple

from critical.core.logging import get_logger
from critical.models.options import IgnoreOptions, IgnoreRule
from critical.services.css_tree import (
    AtBlock,
    Declaration,
    FontFace,
    Node,
    RawRule,
    StyleRule,
    parse,
    serialize,
)

logger = get_logger(__name__)

REGEX_LITERAL = re.compile(r"^/(.+)/([imsx]*)$", re.DOTALL)
REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}


def _keep_last(nodes: List[Node], predicate: Callable[[Node], bool]) -> List[Node]:
    """Drop earlier copies of identical nodes selected by ``predicate``."""

    seen = set()
    kept: List[Node] = []
    for node in reversed(nodes):
        if predicate(node):
            key = node.css
            if key in seen:
                continue
            seen.add(key)
        kept.append(node)
    kept.reverse()
    return kept


def remove_duplicate_font_rules(nodes: List[Node]) -> List[Node]:
    return _keep_last(nodes, lambda node: isinstance(node, FontFace))


def remove_duplicate_media_blocks(nodes: List[Node]) -> List[Node]:
    return _keep_last(nodes, lambda node: isinstance(node, AtBlock))


def remove_duplicate_rules(nodes: List[Node]) -> List[Node]:
    for node in nodes:
        if isinstance(node, AtBlock):
            node.children = remove_duplicate_rules(node.children)
    return _keep_last(nodes, lambda node: isinstance(node, StyleRule))


def merge_media(nodes: List[Node]) -> List[Node]:
    """Fold blocks with identical conditions into the last one of them."""

    groups: Dict[Tuple[str, str], List[AtBlock]] = {}
    for node in nodes:
        if isinstance(node, AtBlock):
            groups.setdefault((node.name, node.condition), []).append(node)

    merged: List[Node] = []
    for node in nodes:
        if not isinstance(node, AtBlock):
            merged.append(node)
            continue
        blocks = groups[(node.name, node.condition)]
        if node is not blocks[-1]:
            continue
        if len(blocks) > 1:
            node.children = [child for block in blocks for child in block.children]
        merged.append(node)
    return merged


def remove_empty(nodes: List[Node]) -> List[Node]:
    kept: List[Node] = []
    for node in nodes:
        if isinstance(node, AtBlock):
            node.children = remove_empty(node.children)
        if not node.empty:
            kept.append(node)
    return kept


def combine_css(fragments: Sequence[str]) -> str:
    """Return one stylesheet made of ``fragments``.

    A single fragment is returned untouched. Otherwise the fragments are
    normalized and only the structural optimizations that are safe across
    independently computed fragments are applied.
    """

    if not fragments:
        return ""
    if len(fragments) == 1:
        return str(fragments[0])

    nodes = parse(" ".join(str(fragment) for fragment in fragments))
    nodes = remove_duplicate_font_rules(nodes)
    nodes = remove_duplicate_media_blocks(nodes)
    nodes = merge_media(nodes)
    nodes = remove_duplicate_rules(nodes)
    nodes = remove_empty(nodes)
    return serialize(nodes)


def compile_ignore_rule(rule: IgnoreRule) -> Callable[[str], bool]:
    """Build a matcher from a plain string, a ``/regex/flags`` string or a compiled pattern."""

    if isinstance(rule, re.Pattern):
        return lambda text: bool(rule.search(text))

    literal = REGEX_LITERAL.match(rule)
    if literal:
        flags = 0
        for flag in literal.group(2):
            flags |= REGEX_FLAGS[flag]
        pattern = re.compile(literal.group(1), flags)
        return lambda text: bool(pattern.search(text))

    return lambda text: text.strip() == rule.strip()


class _IgnoreFilter:
    def __init__(self, rules: Sequence[IgnoreRule], options: IgnoreOptions) -> None:
        self.matchers = [compile_ignore_rule(rule) for rule in rules]
        self.options = options

    def matches(self, text: str) -> bool:
        return any(matcher(text) for matcher in self.matchers)

    def declarations(self, declarations: List[Declaration]) -> List[Declaration]:
        kept = []
        for declaration in declarations:
            if self.options.match_declaration_properties and self.matches(declaration.name):
                continue
            if self.options.match_declaration_values and self.matches(declaration.value):
                continue
            kept.append(declaration)
        return kept

    def apply(self, nodes: List[Node]) -> List[Node]:
        kept: List[Node] = []
        for node in nodes:
            if isinstance(node, StyleRule):
                if self.options.match_selectors:
                    node.selectors = [selector for selector in node.selectors if not self.matches(selector)]
                    if not node.selectors:
                        continue
                node.declarations = self.declarations(node.declarations)
            elif isinstance(node, FontFace):
                if self.options.match_types and self.matches("@font-face"):
                    continue
                node.declarations = self.declarations(node.declarations)
            elif isinstance(node, AtBlock):
                if self.options.match_types and self.matches(f"@{node.name}"):
                    continue
                if self.options.match_media and self.matches(node.condition):
                    continue
                node.children = self.apply(node.children)
            elif isinstance(node, RawRule):
                if self.options.match_types and node.name and self.matches(f"@{node.name}"):
                    continue
            kept.append(node)
        return kept


def filter_css(css: str, ignore: Sequence[IgnoreRule], options: IgnoreOptions | None = None) -> str:
    """Remove selectors, declarations and blocks matching ``ignore``."""

    if not ignore:
        return css
    rules = _IgnoreFilter(ignore, options or IgnoreOptions())
    filtered = serialize(rules.apply(parse(css)))
    logger.debug("css_filtered", rules=len(ignore), before=len(css), after=len(filtered))
    return filtered
