from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Type

from tqdm import tqdm

from defpatch.core.context.patch_context import CapabilityQuery, PatchContext
from defpatch.core.errors import PatchOperationError
from defpatch.core.managers.config_manager import config_manager
from defpatch.dom.models import Document
from defpatch.model import ExecutionReport, PatchUnit, UnitResult, UnitState
from defpatch.operations.core import Operation, Outcome, OutcomeStatus, SuccessMode
from defpatch.operations.registry import OperationRegistry


class PatchEngine:
    """
    Core engine responsible for applying patch units to a document.

    Units run strictly one after another in load order; within a unit the
    top-level operations run in document order. A failed operation is
    recorded and never stops the operations after it, nor later units.
    """

    def __init__(
            self,
            *,
            registry: Type[OperationRegistry] = OperationRegistry,
            logger: Optional[logging.Logger] = None,
    ) -> None:
        self._registry = registry
        self._log = logger or logging.getLogger(__name__)

    def run(
            self,
            document: Document,
            units: Iterable[PatchUnit],
            capability_query: Optional[CapabilityQuery] = None,
            context: Optional[PatchContext] = None,
            show_progress: Optional[bool] = None,
    ) -> ExecutionReport:
        """
        Applies every unit to `document`, mutating it in place.

        Args:
            document: The base document.
            units: Patch units in load order.
            capability_query: Host callback answering "is this capability present?".
            context: A prepared PatchContext (overrides `capability_query`).
            show_progress: Show a tqdm progress bar (defaults to 'engine.show_progress').

        Returns:
            ExecutionReport: One entry per attempted top-level operation.
        """
        run = context or PatchContext(document, capability_query=capability_query)
        if run.dispatch is None:
            run.dispatch = self.apply_operation

        if show_progress is None:
            show_progress = bool(config_manager.get_nested("engine.show_progress", False))

        units = list(units)
        report = ExecutionReport(units=[UnitResult(name=u.name, source=u.source) for u in units])

        for unit, result in tqdm(
                list(zip(units, report.units)),
                desc="Patching",
                unit="unit",
                disable=not show_progress,
        ):
            self._run_unit(unit, result, run, report)

        counts = report.counts()
        self._log.info(
            "Patch run finished: %d unit(s), %d applied, %d skipped, %d failed",
            len(units), counts["Applied"], counts["Skipped"], counts["Failed"],
        )
        return report

    def _run_unit(self, unit: PatchUnit, result: UnitResult, run: PatchContext, report: ExecutionReport) -> None:
        result.state = UnitState.RUNNING
        run.current_unit = unit.name
        self._log.info("Applying patch unit '%s' (%d operation(s))", unit.name, len(unit.operations))

        for index, op in enumerate(unit.operations, start=1):
            self._log.debug("[%s #%d] %s", unit.name, index, op.describe())
            outcome = self.apply_operation(op, run)
            report.record(result, index, outcome)
            if not outcome.succeeded:
                self._log.warning(
                    "Patch unit '%s' operation #%d %s (path %s) failed: %s",
                    unit.name, index, outcome.kind, outcome.path, outcome.reason,
                )

        result.state = UnitState.FAILED if result.failed else UnitState.SUCCEEDED
        run.current_unit = None
        self._log.info("Finished patch unit '%s': %s", unit.name, result.state.value)

    def apply_operation(self, op: Operation, run: PatchContext) -> Outcome:
        """
        Single dispatch point for operations, top-level and nested alike.

        Never raises for per-operation problems: they become Failed outcomes.
        The success-mode override is applied to the raw outcome last.
        """
        if op.parse_error:
            return Outcome.for_operation(op, OutcomeStatus.FAILED, reason=f"PayloadError: {op.parse_error}")

        missing = self._missing_capabilities(op, run)
        if missing:
            return Outcome.for_operation(
                op, OutcomeStatus.SKIPPED,
                reason=f"requires unavailable capability: {', '.join(missing)}",
            )

        definition = self._registry.get(op.kind)
        if definition is None:
            return Outcome.for_operation(op, OutcomeStatus.FAILED, reason=f"unknown operation kind '{op.kind}'")

        handler = definition.handler
        try:
            targets = handler.resolve_targets(op, run)
            raw = handler.report(op, handler.apply(op, targets, run))
        except PatchOperationError as e:
            raw = Outcome.for_operation(op, OutcomeStatus.FAILED, reason=f"{type(e).__name__}: {e.reason}")
        except Exception as e:
            self._log.error("Unexpected error while applying %s: %s", op.describe(), e, exc_info=True)
            raw = Outcome.for_operation(op, OutcomeStatus.FAILED, reason=f"{type(e).__name__}: {e}")

        return self.apply_success_mode(op, raw)

    @staticmethod
    def _missing_capabilities(op: Operation, run: PatchContext) -> List[str]:
        return [name for name in op.may_require if not run.has_capability(name)]

    @staticmethod
    def apply_success_mode(op: Operation, outcome: Outcome) -> Outcome:
        """
        Maps the raw outcome through the operation's (deprecated) success mode.

        The raw status is kept in `raw_status`.
        """
        raw = outcome.status
        status, reason = raw, outcome.reason

        if op.success == SuccessMode.INVERT:
            if raw.succeeded:
                status, reason = OutcomeStatus.FAILED, "succeeded while success mode is Invert"
            else:
                status = OutcomeStatus.SKIPPED
        elif op.success == SuccessMode.ALWAYS:
            if not raw.succeeded:
                status = OutcomeStatus.SKIPPED
        elif op.success == SuccessMode.NEVER:
            status = OutcomeStatus.FAILED
            if raw.succeeded:
                reason = "success mode is Never"

        return outcome.model_copy(update={"status": status, "raw_status": raw, "reason": reason})
