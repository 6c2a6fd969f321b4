# src/defpatch/operations/registry.py
import importlib
import logging
import pkgutil
from typing import Dict, List, Optional

from .core import OperationDefinition

logger = logging.getLogger(__name__)

KIND_PREFIX = "PatchOperation"


class OperationRegistry:
    """
    Central registry mapping operation kinds to their definitions.

    Dynamically discovers OperationDefinition objects from the
    'defpatch.operations.kinds' package. Hosts can add their own kinds with
    register() without touching the engine's dispatch loop.
    """

    _definitions: Dict[str, OperationDefinition] = {}
    _aliases: Dict[str, str] = {}
    _loaded: bool = False

    @classmethod
    def discover(cls) -> None:
        """
        Discovers and registers all definitions found in 'defpatch.operations.kinds'.

        Each module may expose a `DEFINITION` (one OperationDefinition) or
        `DEFINITIONS` (a list of them).
        """
        if cls._loaded:
            return

        try:
            import defpatch.operations.kinds as kinds_pkg

            for _, name, _ in pkgutil.iter_modules(kinds_pkg.__path__):
                full_name = f"defpatch.operations.kinds.{name}"
                try:
                    module = importlib.import_module(full_name)
                    found = list(getattr(module, "DEFINITIONS", []))
                    if isinstance(getattr(module, "DEFINITION", None), OperationDefinition):
                        found.append(module.DEFINITION)
                    for defn in found:
                        cls.register(defn)
                except Exception as e:
                    logger.error("Error loading operation module %s: %s", name, e, exc_info=True)

            cls._loaded = True
        except ImportError as e:
            logger.error("Could not find operation kinds package: %s", e)

    @classmethod
    def register(cls, definition: OperationDefinition) -> None:
        """Registers (or replaces) a definition and its aliases."""
        cls._definitions[definition.kind] = definition
        for alias in (definition.kind, f"{KIND_PREFIX}{definition.kind}", *definition.aliases):
            cls._aliases[alias] = definition.kind
        logger.debug("Registered operation kind '%s'", definition.kind)

    @classmethod
    def get(cls, name: str) -> Optional[OperationDefinition]:
        """Looks up a definition by canonical name or any alias."""
        cls.discover()
        kind = cls._aliases.get((name or "").strip())
        return cls._definitions.get(kind) if kind else None

    @classmethod
    def kinds(cls) -> List[str]:
        """Returns all registered canonical kind names."""
        cls.discover()
        return sorted(cls._definitions.keys())
