# src/defpatch/operations/kinds/remove.py
from typing import List

from defpatch.core.errors import EmptyTargetError
from defpatch.query.model import AttributeTarget, NodeTarget, Target, TextTarget
from ..core import Operation, OperationDefinition, OperationHandler, Outcome, OutcomeStatus


class RemoveHandler(OperationHandler):
    """Deletes every target node, attribute or text content."""

    def apply(self, op: Operation, targets: List[Target], run) -> Outcome:
        if not targets:
            if run.tolerate_missing_removals:
                return Outcome.for_operation(
                    op, OutcomeStatus.SKIPPED, reason="nothing to remove"
                )
            raise EmptyTargetError(str(op.path))

        for target in targets:
            if isinstance(target, NodeTarget):
                del target.parent.children[target.parent.index_of(target.node)]
            elif isinstance(target, TextTarget):
                target.node.text = None
            elif isinstance(target, AttributeTarget):
                target.node.attrs.pop(target.name, None)

        return Outcome.for_operation(op, OutcomeStatus.APPLIED, targets=len(targets))


DEFINITION = OperationDefinition(
    kind="Remove",
    handler=RemoveHandler(),
)
