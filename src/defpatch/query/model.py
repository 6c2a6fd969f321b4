# src/defpatch/query/model.py
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from defpatch.dom.core import Node


class Axis(str, Enum):
    CHILD = "child"
    DESCENDANT = "descendant"


class Selector(str, Enum):
    """What the last step of a path selects."""
    NODE = "node"
    TEXT = "text"
    ATTRIBUTE = "attribute"


class ConditionKind(str, Enum):
    CHILD_TEXT = "child_text"      # [tag="value"]
    ATTR_EQUALS = "attr_equals"    # [@attr="value"]
    ATTR_PRESENT = "attr_present"  # [@attr]


class Condition(BaseModel):
    """A single predicate branch."""
    model_config = ConfigDict(frozen=True)

    kind: ConditionKind
    name: str
    value: Optional[str] = None

    def matches(self, node: Node) -> bool:
        if self.kind == ConditionKind.ATTR_PRESENT:
            return self.name in node.attrs
        if self.kind == ConditionKind.ATTR_EQUALS:
            return node.attrs.get(self.name) == self.value
        # Exact, case-sensitive comparison against any direct child with that tag
        return any(
            child.tag == self.name and (child.text or "") == self.value
            for child in node.children
        )

    def __str__(self) -> str:
        if self.kind == ConditionKind.ATTR_PRESENT:
            return f"@{self.name}"
        prefix = "@" if self.kind == ConditionKind.ATTR_EQUALS else ""
        return f'{prefix}{self.name}="{self.value}"'


class Predicate(BaseModel):
    """A disjunction of conditions: matches if any branch matches."""
    model_config = ConfigDict(frozen=True)

    conditions: Tuple[Condition, ...]

    def matches(self, node: Node) -> bool:
        # any() stops at the first true branch
        return any(condition.matches(node) for condition in self.conditions)

    def __str__(self) -> str:
        return "[" + " or ".join(str(c) for c in self.conditions) + "]"


class Step(BaseModel):
    model_config = ConfigDict(frozen=True)

    axis: Axis = Axis.CHILD
    tag: str = "*"
    predicate: Optional[Predicate] = None

    def matches(self, node: Node) -> bool:
        if self.tag != "*" and node.tag != self.tag:
            return False
        return self.predicate is None or self.predicate.matches(node)


class PathExpression(BaseModel):
    """
    Immutable, parsed location of one or more targets in a document.

    Attributes:
        steps: Element steps walked from the document root.
        selector: Whether the final result is the node, its text, or an attribute.
        attribute: Attribute name when selector is ATTRIBUTE.
        source: The original expression text (used in reports).
    """
    model_config = ConfigDict(frozen=True)

    steps: Tuple[Step, ...]
    selector: Selector = Selector.NODE
    attribute: Optional[str] = None
    source: str = ""

    def __str__(self) -> str:
        return self.source


# --- Resolved targets ---
# Targets hold live references into the tree; equality is identity.

@dataclass(eq=False)
class NodeTarget:
    parent: Node
    node: Node


@dataclass(eq=False)
class TextTarget:
    node: Node


@dataclass(eq=False)
class AttributeTarget:
    node: Node
    name: str


Target = Union[NodeTarget, TextTarget, AttributeTarget]
