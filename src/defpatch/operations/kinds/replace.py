# src/defpatch/operations/kinds/replace.py
from typing import List

from defpatch.core.errors import EmptyTargetError, PayloadError
from defpatch.query.model import AttributeTarget, NodeTarget, Target, TextTarget
from ..core import Operation, OperationDefinition, OperationHandler, Outcome, OutcomeStatus


class ReplaceHandler(OperationHandler):
    """
    Substitutes the payload for every target.

    Element targets are swapped for the payload nodes at the same position.
    Text targets only get new text: the node keeps its tag and attributes.
    Attribute targets get the payload text as their new value.
    """

    def apply(self, op: Operation, targets: List[Target], run) -> Outcome:
        if not targets:
            raise EmptyTargetError(str(op.path))

        node_targets = [t for t in targets if isinstance(t, NodeTarget)]
        if node_targets:
            if not op.value:
                raise PayloadError("replacing an element requires element content in <value>", str(op.path))
            for target in node_targets:
                if target.parent is run.document.node and len(op.value) != 1:
                    raise PayloadError("the root element can only be replaced by exactly one element", str(op.path))
            self.ensure_no_collisions(
                run.document,
                ((target.parent, op.value, target.node) for target in node_targets),
                str(op.path),
            )
        elif op.value:
            raise PayloadError("text and attribute targets take a text <value>", str(op.path))

        for target in targets:
            if isinstance(target, NodeTarget):
                index = target.parent.index_of(target.node)
                target.parent.children[index:index + 1] = op.cloned_value()
            elif isinstance(target, TextTarget):
                target.node.text = op.value_text
            elif isinstance(target, AttributeTarget):
                target.node.attrs[target.name] = op.value_text or ""

        return Outcome.for_operation(op, OutcomeStatus.APPLIED, targets=len(targets))


DEFINITION = OperationDefinition(
    kind="Replace",
    handler=ReplaceHandler(),
    required=["value"],
)
