# src/defpatch/query/parser.py
"""
Parser for the path-query subset.

Supported forms:
    Defs/ThingDef[defName="Gun"]/comps          child steps from the root
    Defs//li[@Class="CompProperties_Power"]     '//' searches any descendant
    Defs/*[defName="A" or defName="B"]          '*' and disjunctive predicates
    Defs/ThingDef[@Abstract]                    attribute presence
    Defs/ThingDef[defName="Gun"]/label/text()   text content of the node
    Defs/ThingDef[defName="Gun"]/@ParentName    an attribute of the node

Anything outside this subset raises PayloadError instead of guessing
extended XPath semantics.
"""
from __future__ import annotations

import re
from typing import List, Optional

from defpatch.core.errors import PayloadError
from .model import Axis, Condition, ConditionKind, PathExpression, Predicate, Selector, Step

_NAME = re.compile(r"[A-Za-z_][\w.\-:]*")
_WS = " \t\r\n"


class _PathScanner:
    """Character cursor over a path expression."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.source)

    def peek(self, text: str) -> bool:
        return self.source.startswith(text, self.pos)

    def skip_ws(self) -> None:
        while not self.at_end() and self.source[self.pos] in _WS:
            self.pos += 1

    def error(self, reason: str) -> PayloadError:
        return PayloadError(f"{reason} at position {self.pos}", self.source)

    def expect(self, text: str) -> None:
        if not self.peek(text):
            found = self.source[self.pos] if not self.at_end() else "end of path"
            raise self.error(f"expected '{text}' but found '{found}'")
        self.pos += len(text)

    def read_name(self) -> str:
        m = _NAME.match(self.source, self.pos)
        if not m:
            found = self.source[self.pos] if not self.at_end() else "end of path"
            raise self.error(f"expected a name but found '{found}'")
        self.pos = m.end()
        return m.group(0)

    def read_string(self) -> str:
        if self.at_end() or self.source[self.pos] not in "\"'":
            raise self.error("expected a quoted string")
        quote = self.source[self.pos]
        end = self.source.find(quote, self.pos + 1)
        if end == -1:
            raise self.error("unterminated string")
        value = self.source[self.pos + 1:end]
        self.pos = end + 1
        return value


def parse_path(source: str) -> PathExpression:
    """
    Parses a path expression into an immutable PathExpression.

    Args:
        source: The expression text.

    Returns:
        PathExpression: The parsed expression.

    Raises:
        PayloadError: If the expression is empty or outside the supported subset.
    """
    text = (source or "").strip()
    if not text:
        raise PayloadError("path is empty", source)

    scanner = _PathScanner(text)
    steps: List[Step] = []
    selector = Selector.NODE
    attribute: Optional[str] = None

    if scanner.peek("//"):
        axis = Axis.DESCENDANT
        scanner.pos = 2
    elif scanner.peek("/"):
        axis = Axis.CHILD
        scanner.pos = 1
    else:
        axis = Axis.CHILD

    while True:
        if scanner.peek("@"):
            # Trailing attribute selector
            if not steps or axis == Axis.DESCENDANT:
                raise scanner.error("an attribute selector must follow an element step")
            scanner.pos += 1
            attribute = scanner.read_name()
            selector = Selector.ATTRIBUTE
            if not scanner.at_end():
                raise scanner.error("an attribute selector must end the path")
            break

        if scanner.peek("*"):
            scanner.pos += 1
            tag = "*"
        else:
            tag = scanner.read_name()
            if scanner.peek("("):
                if tag == "text" and scanner.peek("()") and steps and axis == Axis.CHILD:
                    scanner.pos += 2
                    selector = Selector.TEXT
                    if not scanner.at_end():
                        raise scanner.error("text() must end the path")
                    break
                raise scanner.error(f"function '{tag}()' is not supported here")

        predicate = None
        if scanner.peek("["):
            predicate = _parse_predicate(scanner)
            if scanner.peek("["):
                raise scanner.error("only one predicate block per step is supported")

        steps.append(Step(axis=axis, tag=tag, predicate=predicate))

        if scanner.at_end():
            break
        if scanner.peek("//"):
            axis = Axis.DESCENDANT
            scanner.pos += 2
        elif scanner.peek("/"):
            axis = Axis.CHILD
            scanner.pos += 1
        else:
            raise scanner.error(f"unexpected character '{scanner.source[scanner.pos]}'")

        if scanner.at_end():
            raise scanner.error("path ends with a separator")

    return PathExpression(steps=tuple(steps), selector=selector, attribute=attribute, source=text)


def _parse_predicate(scanner: _PathScanner) -> Predicate:
    scanner.expect("[")
    conditions: List[Condition] = []

    while True:
        scanner.skip_ws()
        conditions.append(_parse_condition(scanner))
        scanner.skip_ws()

        if scanner.peek("]"):
            scanner.pos += 1
            return Predicate(conditions=tuple(conditions))
        if scanner.peek("or") and _followed_by_ws(scanner, 2):
            scanner.pos += 2
            continue
        if scanner.peek("and") and _followed_by_ws(scanner, 3):
            raise scanner.error("'and' predicates are not supported, only 'or'")
        if scanner.at_end():
            raise scanner.error("unterminated predicate")
        raise scanner.error(f"unexpected character '{scanner.source[scanner.pos]}' in predicate")


def _parse_condition(scanner: _PathScanner) -> Condition:
    if scanner.peek("@"):
        scanner.pos += 1
        name = scanner.read_name()
        scanner.skip_ws()
        if scanner.peek("="):
            scanner.pos += 1
            scanner.skip_ws()
            return Condition(kind=ConditionKind.ATTR_EQUALS, name=name, value=scanner.read_string())
        _reject_operator(scanner)
        return Condition(kind=ConditionKind.ATTR_PRESENT, name=name)

    if not scanner.at_end() and scanner.source[scanner.pos].isdigit():
        raise scanner.error("positional predicates are not supported")

    name = scanner.read_name()
    if scanner.peek("("):
        raise scanner.error(f"function '{name}()' is not supported in predicates")
    if scanner.peek("/") or scanner.peek("["):
        raise scanner.error("nested paths in predicates are not supported")
    scanner.skip_ws()
    _reject_operator(scanner)
    scanner.expect("=")
    scanner.skip_ws()
    return Condition(kind=ConditionKind.CHILD_TEXT, name=name, value=scanner.read_string())


def _reject_operator(scanner: _PathScanner) -> None:
    for op in ("!=", "<", ">"):
        if scanner.peek(op):
            raise scanner.error(f"operator '{op}' is not supported")


def _followed_by_ws(scanner: _PathScanner, length: int) -> bool:
    end = scanner.pos + length
    return end < len(scanner.source) and scanner.source[end] in _WS
