# src/defpatch/operations/kinds/attributes.py
from typing import List

from defpatch.core.errors import EmptyTargetError, PayloadError
from defpatch.query.model import Target
from ..core import Operation, OperationDefinition, OperationHandler, Outcome, OutcomeStatus


class _AttributeHandler(OperationHandler):

    def attribute_targets(self, op: Operation, targets: List[Target]):
        nodes = self.node_targets(op, targets)
        if not nodes:
            raise EmptyTargetError(str(op.path))
        return nodes

    @staticmethod
    def attribute_value(op: Operation) -> str:
        if op.value:
            raise PayloadError(f"{op.kind} takes a text <value>, not elements", str(op.path))
        return op.value_text or ""


class AttributeAddHandler(_AttributeHandler):
    """Adds the attribute where it is absent; nodes that already carry it are left alone."""

    def apply(self, op: Operation, targets: List[Target], run) -> Outcome:
        nodes = self.attribute_targets(op, targets)
        value = self.attribute_value(op)

        added = 0
        for target in nodes:
            if op.attribute not in target.node.attrs:
                target.node.attrs[op.attribute] = value
                added += 1

        if not added:
            return Outcome.for_operation(
                op, OutcomeStatus.SKIPPED, targets=len(nodes),
                reason=f"attribute '{op.attribute}' already present on every target",
            )
        return Outcome.for_operation(op, OutcomeStatus.APPLIED, targets=added)


class AttributeSetHandler(_AttributeHandler):
    """Adds or overwrites the attribute on every target."""

    def apply(self, op: Operation, targets: List[Target], run) -> Outcome:
        nodes = self.attribute_targets(op, targets)
        value = self.attribute_value(op)
        for target in nodes:
            target.node.attrs[op.attribute] = value
        return Outcome.for_operation(op, OutcomeStatus.APPLIED, targets=len(nodes))


class AttributeRemoveHandler(_AttributeHandler):
    """Removes the attribute; targets without it are a no-op."""

    def apply(self, op: Operation, targets: List[Target], run) -> Outcome:
        nodes = self.attribute_targets(op, targets)

        removed = 0
        for target in nodes:
            if target.node.attrs.pop(op.attribute, None) is not None:
                removed += 1

        if not removed:
            return Outcome.for_operation(
                op, OutcomeStatus.SKIPPED, targets=len(nodes),
                reason=f"attribute '{op.attribute}' absent on every target",
            )
        return Outcome.for_operation(op, OutcomeStatus.APPLIED, targets=removed)


DEFINITIONS = [
    OperationDefinition(
        kind="AttributeAdd",
        handler=AttributeAddHandler(),
        required=["attribute", "value"],
    ),
    OperationDefinition(
        kind="AttributeSet",
        handler=AttributeSetHandler(),
        required=["attribute", "value"],
    ),
    OperationDefinition(
        kind="AttributeRemove",
        handler=AttributeRemoveHandler(),
        required=["attribute"],
    ),
]
