"""Lightweight rule tree built on top of tinycss2.

tinycss2 tokenizes without interpreting selectors or values, so anything it
does not understand is carried through verbatim. The tree keeps only what
merging, filtering and pruning need, and serializes it in minified form.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Set, Union

import tinycss2
from tinycss2.serializer import serialize_identifier

AT_RULE_NAME = re.compile(r"@([-\w]+)")

# At-rules whose block holds ordinary rules.
GROUPING_AT_RULES = {"media", "supports", "container", "layer", "scope", "document", "-moz-document", "starting-style"}

# Literal tokens that never need surrounding whitespace in each context.
SELECTOR_TIGHT = {",", ">", "~", "+"}
VALUE_TIGHT = {",", "/"}
PRELUDE_TIGHT = {",", ":"}
BLOCK_TIGHT = {",", ";"}

SKIPPED_TOKENS = {"whitespace", "comment"}


@dataclass
class Declaration:
    name: str
    value: str
    important: bool = False

    @property
    def css(self) -> str:
        return f"{self.name}:{self.value}{'!important' if self.important else ''}"


@dataclass
class StyleRule:
    selectors: List[str]
    declarations: List[Declaration] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.selectors or not self.declarations

    @property
    def css(self) -> str:
        body = ";".join(declaration.css for declaration in self.declarations)
        return f"{','.join(self.selectors)}{{{body}}}"


@dataclass
class FontFace:
    declarations: List[Declaration] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.declarations

    @property
    def family(self) -> str:
        for declaration in self.declarations:
            if declaration.name == "font-family":
                return declaration.value.strip("'\" ").lower()
        return ""

    @property
    def css(self) -> str:
        return "@font-face{" + ";".join(declaration.css for declaration in self.declarations) + "}"


@dataclass
class AtBlock:
    """A grouping rule such as ``@media`` or ``@supports``."""

    name: str
    condition: str
    children: List["Node"] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return all(child.empty for child in self.children)

    @property
    def css(self) -> str:
        prelude = f" {self.condition}" if self.condition else ""
        return f"@{self.name}{prelude}{{{serialize(self.children)}}}"


@dataclass
class RawRule:
    """Any other rule, kept as minified source text."""

    text: str

    @property
    def empty(self) -> bool:
        return not self.text.strip()

    @property
    def name(self) -> str:
        match = AT_RULE_NAME.match(self.text.strip())
        return match.group(1).lower() if match else ""

    @property
    def css(self) -> str:
        return self.text


Node = Union[StyleRule, FontFace, AtBlock, RawRule]


def _is_tight(token, tight: Set[str]) -> bool:
    if token.type == "{} block":
        return True
    return token.type == "literal" and token.value in tight


def _token_css(token, tight: Set[str]) -> str:
    kind = token.type
    if kind == "function":
        return f"{serialize_identifier(token.name)}({compact(token.arguments, tight)})"
    if kind == "() block":
        return f"({compact(token.content, tight)})"
    if kind == "[] block":
        return f"[{compact(token.content, tight)}]"
    if kind == "{} block":
        return f"{{{compact(token.content, BLOCK_TIGHT)}}}"
    return token.serialize()


def compact(tokens: Optional[Iterable], tight: Set[str] = VALUE_TIGHT) -> str:
    """Serialize component values with comments removed and whitespace collapsed.

    Runs of whitespace become one space, or nothing next to a ``tight``
    delimiter. Tokens that were adjacent in the source stay adjacent.
    """

    parts: List[str] = []
    previous = None
    pending_space = False
    for token in tokens or ():
        if token.type in SKIPPED_TOKENS:
            pending_space = pending_space or token.type == "whitespace"
            continue
        if pending_space and previous is not None and not (
            _is_tight(previous, tight) or _is_tight(token, tight)
        ):
            parts.append(" ")
        parts.append(_token_css(token, tight))
        previous = token
        pending_space = False
    return "".join(parts)


def _split_selectors(prelude: Iterable) -> List[str]:
    groups: List[List] = [[]]
    for token in prelude:
        if token.type == "literal" and token.value == ",":
            groups.append([])
        else:
            groups[-1].append(token)
    return [selector for selector in (compact(group, SELECTOR_TIGHT) for group in groups) if selector]


def _declarations(content: Optional[List]) -> Optional[List[Declaration]]:
    """Declarations of a block, or None when it holds anything else."""

    declarations: List[Declaration] = []
    for item in tinycss2.parse_declaration_list(content or [], skip_comments=True, skip_whitespace=True):
        if item.type != "declaration":
            return None
        name = item.name if item.name.startswith("--") else item.lower_name
        declarations.append(Declaration(name=name, value=compact(item.value), important=item.important))
    return declarations


def _raw_block(content: Optional[List]) -> str:
    declarations = _declarations(content)
    if declarations is not None:
        return ";".join(declaration.css for declaration in declarations)
    return compact(content, BLOCK_TIGHT)


def _qualified_rule(rule) -> Node:
    selectors = _split_selectors(rule.prelude)
    declarations = _declarations(rule.content)
    if declarations is None:
        return RawRule(text=f"{','.join(selectors)}{{{compact(rule.content, BLOCK_TIGHT)}}}")
    return StyleRule(selectors=selectors, declarations=declarations)


def _at_rule(rule) -> Node:
    name = rule.lower_at_keyword
    prelude = compact(rule.prelude, PRELUDE_TIGHT)

    if rule.content is None:
        return RawRule(text=f"@{name} {prelude};" if prelude else f"@{name};")
    if name in GROUPING_AT_RULES:
        children = _convert(tinycss2.parse_rule_list(rule.content, skip_comments=True, skip_whitespace=True))
        return AtBlock(name=name, condition=prelude, children=children)
    if name == "font-face":
        declarations = _declarations(rule.content)
        if declarations is not None:
            return FontFace(declarations=declarations)
    if name.endswith("keyframes"):
        frames = _convert(tinycss2.parse_rule_list(rule.content, skip_comments=True, skip_whitespace=True))
        return RawRule(text=f"@{name} {prelude}{{{serialize(frames)}}}")

    head = f"@{name} {prelude}" if prelude else f"@{name}"
    return RawRule(text=f"{head}{{{_raw_block(rule.content)}}}")


def _convert(rules: Iterable) -> List[Node]:
    nodes: List[Node] = []
    for rule in rules:
        if rule.type == "qualified-rule":
            nodes.append(_qualified_rule(rule))
        elif rule.type == "at-rule":
            nodes.append(_at_rule(rule))
    return nodes


def parse(css: str) -> List[Node]:
    """Parse ``css`` into a list of top-level nodes."""

    return _convert(tinycss2.parse_stylesheet(css, skip_comments=True, skip_whitespace=True))


def serialize(nodes: Iterable[Node]) -> str:
    """Minified CSS text for ``nodes``, skipping empty rules."""

    return "".join(node.css for node in nodes if not node.empty)


def walk_style_rules(nodes: Iterable[Node]) -> Iterator[StyleRule]:
    """Yield every style rule, descending into grouping blocks."""

    for node in nodes:
        if isinstance(node, StyleRule):
            yield node
        elif isinstance(node, AtBlock):
            yield from walk_style_rules(node.children)


def minify_css(css: str) -> str:
    """Level-1 normalization: whitespace, comments and empty rules removed."""

    if not css.strip():
        return ""
    return serialize(parse(css))
