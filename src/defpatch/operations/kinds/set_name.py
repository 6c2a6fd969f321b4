# src/defpatch/operations/kinds/set_name.py
import re
from typing import List

from defpatch.core.errors import EmptyTargetError, PayloadError
from defpatch.dom.core import Node
from defpatch.query.model import Target
from ..core import Operation, OperationDefinition, OperationHandler, Outcome, OutcomeStatus

_TAG_NAME = re.compile(r"^[A-Za-z_][\w.\-]*$")


class SetNameHandler(OperationHandler):
    """Renames every target node; attributes, text and children are untouched."""

    def apply(self, op: Operation, targets: List[Target], run) -> Outcome:
        nodes = self.node_targets(op, targets)
        if not nodes:
            raise EmptyTargetError(str(op.path))

        probe = Node(tag=op.name)
        self.ensure_no_collisions(
            run.document,
            ((target.parent, [probe], target.node) for target in nodes),
            str(op.path),
        )

        for target in nodes:
            target.node.tag = op.name
        return Outcome.for_operation(op, OutcomeStatus.APPLIED, targets=len(nodes))


def _validate(op: Operation) -> None:
    if not _TAG_NAME.match(op.name or ""):
        raise PayloadError(f"'{op.name}' is not a valid tag name", str(op.path))


DEFINITION = OperationDefinition(
    kind="SetName",
    handler=SetNameHandler(),
    required=["name"],
    validator=_validate,
)
