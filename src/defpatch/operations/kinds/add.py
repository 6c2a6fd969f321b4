# src/defpatch/operations/kinds/add.py
from typing import List

from defpatch.core.errors import EmptyTargetError, PayloadError
from defpatch.query.model import Target
from ..core import Operation, OperationDefinition, OperationHandler, Order, Outcome, OutcomeStatus


class AddHandler(OperationHandler):
    """
    Adds the payload as new children of every target node.
    Appends by default; order 'Prepend' puts the payload before existing children.
    """

    def apply(self, op: Operation, targets: List[Target], run) -> Outcome:
        nodes = self.node_targets(op, targets)
        if not nodes:
            raise EmptyTargetError(str(op.path))
        if not op.value:
            raise PayloadError("Add requires element content in <value>", str(op.path))

        self.ensure_no_collisions(
            run.document,
            ((target.node, op.value, None) for target in nodes),
            str(op.path),
        )

        prepend = op.order == Order.PREPEND
        for target in nodes:
            fresh = op.cloned_value()
            if prepend:
                target.node.children[0:0] = fresh
            else:
                target.node.children.extend(fresh)

        return Outcome.for_operation(op, OutcomeStatus.APPLIED, targets=len(nodes))


DEFINITION = OperationDefinition(
    kind="Add",
    handler=AddHandler(),
    required=["value"],
)
