# src/defpatch/operations/kinds/find_mod.py
from typing import List

from defpatch.query.model import Target
from ..core import Operation, OperationDefinition, Outcome
from .conditional import BranchHandler, validate_branches


class FindModHandler(BranchHandler):
    """
    Asks the host whether any of the listed capabilities (packages, mods) is
    present and runs the 'match' or 'nomatch' branch accordingly.
    """

    def resolve_targets(self, op: Operation, run) -> List[Target]:
        return []

    def apply(self, op: Operation, targets: List[Target], run) -> Outcome:
        present = any(run.has_capability(name) for name in op.mods)
        return self.run_branch(op, present, run)


DEFINITION = OperationDefinition(
    kind="FindMod",
    handler=FindModHandler(),
    required=["mods"],
    fields=["match", "nomatch"],
    aliases=["FindCapability"],
    requires_path=False,
    validator=validate_branches,
)
