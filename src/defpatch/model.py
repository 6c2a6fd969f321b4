from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from defpatch.operations.core import Operation, Outcome, OutcomeStatus


class PatchUnit(BaseModel):
    """
    One independently authored group of operations, applied as a unit in load order.
    """
    name: str
    source: str = "<memory>"
    operations: List[Operation] = Field(default_factory=list)


class UnitState(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class UnitResult(BaseModel):
    """Lifecycle state and ordered outcomes of one patch unit."""
    name: str
    source: str = "<memory>"
    state: UnitState = UnitState.PENDING
    outcomes: List[Outcome] = Field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.succeeded)


class ReportEntry(BaseModel):
    """One attempted top-level operation."""
    unit: str
    index: int  # 1-based position within the unit
    kind: str
    status: OutcomeStatus
    reason: Optional[str] = None
    path: Optional[str] = None
    line: Optional[int] = None


class ExecutionReport(BaseModel):
    """
    Data model collecting everything a run attempted.

    Contains exactly one entry per top-level operation of every unit, in
    execution order; nested outcomes stay available on the unit results.
    """
    units: List[UnitResult] = Field(default_factory=list)
    entries: List[ReportEntry] = Field(default_factory=list)

    def record(self, unit: UnitResult, index: int, outcome: Outcome) -> None:
        unit.outcomes.append(outcome)
        self.entries.append(ReportEntry(
            unit=unit.name,
            index=index,
            kind=outcome.kind,
            status=outcome.status,
            reason=outcome.reason,
            path=outcome.path,
            line=outcome.line,
        ))

    @property
    def succeeded(self) -> bool:
        return all(unit.state == UnitState.SUCCEEDED for unit in self.units)

    def counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in OutcomeStatus}
        for entry in self.entries:
            counts[entry.status.value] += 1
        return counts

    def failures(self) -> List[ReportEntry]:
        return [entry for entry in self.entries if entry.status == OutcomeStatus.FAILED]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "counts": self.counts(),
            "units": [
                {
                    "name": unit.name,
                    "source": unit.source,
                    "state": unit.state.value,
                    "outcomes": [outcome.to_dict() for outcome in unit.outcomes],
                }
                for unit in self.units
            ],
            "entries": [entry.model_dump(mode="json", exclude_none=True) for entry in self.entries],
        }
