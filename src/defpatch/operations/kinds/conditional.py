# src/defpatch/operations/kinds/conditional.py
from typing import List

from defpatch.core.errors import PayloadError
from defpatch.query.model import Target
from ..core import Operation, OperationDefinition, OperationHandler, Outcome, OutcomeStatus


class BranchHandler(OperationHandler):
    """Shared branch execution for Conditional and FindMod."""

    def run_branch(self, op: Operation, matched: bool, run, targets: int = 0) -> Outcome:
        branch = op.match if matched else op.nomatch
        label = "match" if matched else "nomatch"
        if branch is None:
            return Outcome.for_operation(
                op, OutcomeStatus.SKIPPED, targets=targets,
                reason=f"no '{label}' branch to run",
            )

        outcome = run.apply(branch)
        reason = outcome.reason
        if not outcome.succeeded:
            reason = f"'{label}' branch failed: {outcome.reason}"
        return Outcome.for_operation(
            op, outcome.status, targets=targets, reason=reason, children=[outcome],
        )


class ConditionalHandler(BranchHandler):
    """
    Tests whether the path matches anything (without mutating) and runs the
    'match' or 'nomatch' branch accordingly.
    """

    def apply(self, op: Operation, targets: List[Target], run) -> Outcome:
        return self.run_branch(op, bool(targets), run, targets=len(targets))


def validate_branches(op: Operation) -> None:
    if op.match is None and op.nomatch is None:
        raise PayloadError(f"{op.kind} needs a <match> or a <nomatch> branch", str(op.path) if op.path else None)


DEFINITION = OperationDefinition(
    kind="Conditional",
    handler=ConditionalHandler(),
    fields=["match", "nomatch"],
    validator=validate_branches,
)
