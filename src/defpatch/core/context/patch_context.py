# src/defpatch/core/context/patch_context.py
import logging
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from defpatch.core.managers.config_manager import config_manager
from defpatch.dom.models import Document
from defpatch.query.evaluator import PathEvaluator

if TYPE_CHECKING:
    from defpatch.operations.core import Operation, Outcome

logger = logging.getLogger(__name__)

CapabilityQuery = Callable[[str], bool]


def static_capabilities(names: Iterable[str]) -> CapabilityQuery:
    """Builds a capability query answering from a fixed set of names (case-insensitive)."""
    available = {n.strip().lower() for n in names if n and n.strip()}

    def query(name: str) -> bool:
        return (name or "").strip().lower() in available

    return query


class PatchContext:
    """
    Holds the state shared by all operations of one run: the document being
    patched, its evaluator, the host's capability query and engine settings.
    The engine owns the context for the duration of the run.
    """

    def __init__(
            self,
            document: Document,
            capability_query: Optional[CapabilityQuery] = None,
            dispatch: Optional[Callable[['Operation', 'PatchContext'], 'Outcome']] = None,
    ):
        self.document = document
        self.evaluator = PathEvaluator(document)
        self.capability_query = capability_query or static_capabilities(
            config_manager.get_nested("capabilities.available", [])
        )
        self.dispatch = dispatch

        self.tolerate_missing_removals = bool(
            config_manager.get_nested("engine.tolerate_missing_removals", False)
        )
        self.extensions_tag = config_manager.get_nested("engine.extensions_tag", "modExtensions")
        self.current_unit: Optional[str] = None

    def has_capability(self, name: str) -> bool:
        present = bool(self.capability_query(name))
        logger.debug("Capability '%s' present: %s", name, present)
        return present

    def apply(self, op: 'Operation') -> 'Outcome':
        """Dispatches a nested operation through the engine (used by composite kinds)."""
        if self.dispatch is None:
            raise RuntimeError("PatchContext has no engine attached")
        return self.dispatch(op, self)

    def __repr__(self) -> str:
        return f"<PatchContext document={self.document.source!r} unit={self.current_unit!r}>"
