# src/defpatch/operations/kinds/extension.py
from typing import List

from defpatch.core.errors import EmptyTargetError, PayloadError
from defpatch.dom.core import LIST_ITEM_TAG, Node
from defpatch.query.model import Target
from ..core import Operation, OperationDefinition, OperationHandler, Outcome, OutcomeStatus


class AddExtensionHandler(OperationHandler):
    """
    Appends the payload as a list entry of the extensions child of every
    target, creating that child when it does not exist yet.
    """

    def apply(self, op: Operation, targets: List[Target], run) -> Outcome:
        nodes = self.node_targets(op, targets)
        if not nodes:
            raise EmptyTargetError(str(op.path))
        if not op.value:
            raise PayloadError("AddModExtension requires element content in <value>", str(op.path))

        for target in nodes:
            extensions = target.node.find_child(run.extensions_tag)
            if extensions is None:
                extensions = Node(tag=run.extensions_tag)
                target.node.children.append(extensions)
            extensions.children.extend(self._entries(op))

        return Outcome.for_operation(op, OutcomeStatus.APPLIED, targets=len(nodes))

    @staticmethod
    def _entries(op: Operation) -> List[Node]:
        fresh = op.cloned_value()
        if all(node.tag == LIST_ITEM_TAG for node in fresh):
            return fresh
        # Anything else becomes the content of a single new entry
        return [Node(tag=LIST_ITEM_TAG, children=fresh)]


DEFINITION = OperationDefinition(
    kind="AddModExtension",
    handler=AddExtensionHandler(),
    required=["value"],
    aliases=["AddExtension"],
)
