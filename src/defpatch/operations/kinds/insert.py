# src/defpatch/operations/kinds/insert.py
from typing import List

from defpatch.core.errors import EmptyTargetError, PayloadError
from defpatch.query.model import Target
from ..core import Operation, OperationDefinition, OperationHandler, Order, Outcome, OutcomeStatus


class InsertHandler(OperationHandler):
    """
    Inserts the payload as siblings of every target node.
    Goes before the target by default; order 'Append' puts it right after.
    """

    def apply(self, op: Operation, targets: List[Target], run) -> Outcome:
        nodes = self.node_targets(op, targets)
        if not nodes:
            raise EmptyTargetError(str(op.path))
        if not op.value:
            raise PayloadError("Insert requires element content in <value>", str(op.path))
        if any(target.parent is run.document.node for target in nodes):
            raise PayloadError("cannot insert siblings next to the root element", str(op.path))

        self.ensure_no_collisions(
            run.document,
            ((target.parent, op.value, None) for target in nodes),
            str(op.path),
        )

        after = op.order == Order.APPEND
        for target in nodes:
            # Re-locate by identity: earlier insertions may have shifted positions
            index = target.parent.index_of(target.node) + (1 if after else 0)
            target.parent.children[index:index] = op.cloned_value()

        return Outcome.for_operation(op, OutcomeStatus.APPLIED, targets=len(nodes))


DEFINITION = OperationDefinition(
    kind="Insert",
    handler=InsertHandler(),
    required=["value"],
)
