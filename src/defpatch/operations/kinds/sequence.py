# src/defpatch/operations/kinds/sequence.py
import logging
from typing import List

from defpatch.query.model import Target
from ..core import Operation, OperationDefinition, OperationHandler, Outcome, OutcomeStatus

logger = logging.getLogger(__name__)


class SequenceHandler(OperationHandler):
    """
    Runs nested operations in order, each against the tree left by the previous
    one. Stops at the first failure; mutations already made are kept.
    """

    def resolve_targets(self, op: Operation, run) -> List[Target]:
        return []

    def apply(self, op: Operation, targets: List[Target], run) -> Outcome:
        if not op.operations:
            return Outcome.for_operation(op, OutcomeStatus.SKIPPED, reason="sequence is empty")

        children: List[Outcome] = []
        for index, nested in enumerate(op.operations, start=1):
            outcome = run.apply(nested)
            children.append(outcome)
            if not outcome.succeeded:
                logger.debug("Sequence aborted at step %d/%d", index, len(op.operations))
                return Outcome.for_operation(
                    op, OutcomeStatus.FAILED, children=children,
                    reason=f"step {index} ({nested.describe()}) failed: {outcome.reason}",
                )

        status = (
            OutcomeStatus.APPLIED
            if any(c.status == OutcomeStatus.APPLIED for c in children)
            else OutcomeStatus.SKIPPED
        )
        return Outcome.for_operation(op, status, children=children)


DEFINITION = OperationDefinition(
    kind="Sequence",
    handler=SequenceHandler(),
    required=["operations"],
    requires_path=False,
)
