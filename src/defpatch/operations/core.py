# src/defpatch/operations/core.py
from __future__ import annotations

import abc
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from defpatch.core.errors import CollisionError, PayloadError
from defpatch.dom.core import Node
from defpatch.query.model import NodeTarget, PathExpression, Target

if TYPE_CHECKING:
    from defpatch.core.context.patch_context import PatchContext
    from defpatch.dom.models import Document


class Order(str, Enum):
    PREPEND = "Prepend"
    APPEND = "Append"


class SuccessMode(str, Enum):
    """
    Legacy outcome override. Deprecated: use a Conditional operation instead
    of Invert/Always/Never.
    """
    NORMAL = "Normal"
    INVERT = "Invert"
    ALWAYS = "Always"
    NEVER = "Never"


class OutcomeStatus(str, Enum):
    APPLIED = "Applied"
    SKIPPED = "Skipped"
    FAILED = "Failed"

    @property
    def succeeded(self) -> bool:
        return self is not OutcomeStatus.FAILED


class Operation(BaseModel):
    """
    One parsed patch instruction. Composite kinds nest further operations.

    Operations are immutable; payload nodes are cloned whenever they are
    inserted into a document, so applying an operation never changes it.
    """
    model_config = ConfigDict(frozen=True)

    kind: str
    path: Optional[PathExpression] = None
    inheritors: bool = False
    value: Tuple[Node, ...] = ()
    value_text: Optional[str] = None
    name: Optional[str] = None
    attribute: Optional[str] = None
    order: Optional[Order] = None
    success: SuccessMode = SuccessMode.NORMAL
    mods: Tuple[str, ...] = ()
    operations: Tuple['Operation', ...] = ()
    match: Optional['Operation'] = None
    nomatch: Optional['Operation'] = None
    may_require: Tuple[str, ...] = ()
    parse_error: Optional[str] = None
    line: Optional[int] = None

    def describe(self) -> str:
        if self.path is not None:
            return f"{self.kind}({self.path})"
        return self.kind

    def cloned_value(self) -> List[Node]:
        """Fresh copies of the payload nodes, safe to insert into a tree."""
        return [node.clone() for node in self.value]


class Outcome(BaseModel):
    """
    Result of applying one operation.

    `raw_status` keeps the status before the success-mode override.
    Composite kinds report their nested outcomes in `children`.
    """
    kind: str
    status: OutcomeStatus
    raw_status: Optional[OutcomeStatus] = None
    reason: Optional[str] = None
    path: Optional[str] = None
    line: Optional[int] = None
    targets: int = 0
    children: List['Outcome'] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status.succeeded

    @classmethod
    def for_operation(cls, op: Operation, status: OutcomeStatus, **kwargs: Any) -> 'Outcome':
        return cls(
            kind=op.kind,
            status=status,
            path=str(op.path) if op.path is not None else None,
            line=op.line,
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


Operation.model_rebuild()
Outcome.model_rebuild()


class OperationHandler(metaclass=abc.ABCMeta):
    """
    Abstract base class for operation kinds.

    A handler resolves the targets of an operation, applies it and reports
    the outcome. Handlers signal failure by raising a PatchOperationError;
    the engine turns that into a Failed outcome.
    """

    def resolve_targets(self, op: Operation, run: 'PatchContext') -> List[Target]:
        if op.path is None:
            raise PayloadError(f"{op.kind} requires a path")
        return run.evaluator.evaluate(op.path, include_inheritors=op.inheritors)

    @abc.abstractmethod
    def apply(self, op: Operation, targets: List[Target], run: 'PatchContext') -> Outcome:
        """
        Applies the operation to the resolved targets.

        Returns:
            Outcome: Applied or Skipped. Leaf kinds raise on failure; composite
            kinds return a Failed outcome so their nested outcomes are kept.
        """
        raise NotImplementedError("Every operation handler must implement 'apply'.")

    def report(self, op: Operation, outcome: Outcome) -> Outcome:
        """Hook to adjust the raw outcome before the success mode is applied."""
        return outcome

    # --- Helpers shared by the concrete handlers ---

    @staticmethod
    def node_targets(op: Operation, targets: List[Target]) -> List[NodeTarget]:
        nodes = [t for t in targets if isinstance(t, NodeTarget)]
        if len(nodes) != len(targets):
            raise PayloadError(f"{op.kind} needs element targets, not text or attributes", str(op.path))
        return nodes

    @staticmethod
    def ensure_no_collisions(
            document: 'Document',
            placements: Iterable[Tuple[Node, Iterable[Node], Optional[Node]]],
            path: Optional[str] = None,
    ) -> None:
        """
        Checks every planned insertion before anything is mutated.

        Args:
            document: The document supplying the sibling policy.
            placements: (parent, new children, child being replaced or renamed).
            path: Expression text for the error message.

        Raises:
            CollisionError: If any insertion would duplicate a non-list sibling,
                including duplicates between the planned insertions themselves.
        """
        planned = set()
        for parent, nodes, exclude in placements:
            for node in nodes:
                if document.allows_repeat(parent, node.tag):
                    continue
                key = (id(parent), node.tag)
                if key in planned or document.collides(parent, node.tag, exclude=exclude):
                    raise CollisionError(node.tag, path)
                planned.add(key)


class OperationDefinition:
    """
    Configuration object binding an operation kind to its handler and fields.
    """

    def __init__(
            self,
            kind: str,
            handler: OperationHandler,
            fields: Optional[List[str]] = None,
            required: Optional[List[str]] = None,
            aliases: Optional[List[str]] = None,
            requires_path: bool = True,
            validator: Optional[Callable[[Operation], None]] = None,
    ):
        """
        Args:
            kind: Canonical name used as the 'Class' discriminator.
            handler: The strategy applying this kind.
            fields: Kind-specific child elements accepted besides path/success/order.
            required: Fields that must be present.
            aliases: Additional discriminator names.
            requires_path: Whether a path element is mandatory.
            validator: Extra check run on the parsed operation; raises PayloadError.
        """
        self.kind = kind
        self.handler = handler
        self.fields = tuple(fields or [])
        self.required = tuple(required or [])
        self.aliases = tuple(aliases or [])
        self.requires_path = requires_path
        self.validator = validator

        # Every required field is implicitly accepted
        self.accepted = tuple(sorted(set(self.fields) | set(self.required)))
