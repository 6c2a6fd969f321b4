import logging
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from defpatch.core.context.patch_context import CapabilityQuery
from defpatch.core.xngine import PatchEngine
from defpatch.dom.models import Document
from defpatch.inheritance.resolver import InheritanceResolver
from defpatch.model import ExecutionReport, PatchUnit

logger = logging.getLogger(__name__)


class PipelineResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    patched: Document
    resolved: Optional[Document] = None
    report: ExecutionReport

    @property
    def document(self) -> Document:
        """The final document: resolved when inheritance ran, patched otherwise."""
        return self.resolved if self.resolved is not None else self.patched


class PatchPipeline:
    """
    Runs the patch engine over all units, then the inheritance pass.

    The two phases are never interleaved: inheritance only ever sees the
    fully patched document.
    """

    def __init__(
            self,
            engine: Optional[PatchEngine] = None,
            resolver: Optional[InheritanceResolver] = None,
            resolve_inheritance: bool = True,
    ):
        self.engine = engine or PatchEngine()
        self.resolver = resolver or InheritanceResolver()
        self.resolve_inheritance = resolve_inheritance

    def run(
            self,
            base: Document,
            units: Iterable[PatchUnit],
            capability_query: Optional[CapabilityQuery] = None,
            show_progress: Optional[bool] = None,
    ) -> PipelineResult:
        report = self.engine.run(base, units, capability_query=capability_query, show_progress=show_progress)

        resolved = None
        if self.resolve_inheritance:
            logger.info("All patch units applied; resolving inheritance")
            resolved = self.resolver.resolve(base)
        return PipelineResult(patched=base, resolved=resolved, report=report)
