# src/defpatch/app.py
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from defpatch.core.context.patch_context import static_capabilities
from defpatch.core.errors import ConfigurationError, InheritanceError, MalformedDocumentError
from defpatch.core.managers.config_manager import config_manager
from defpatch.core.pipeline import PatchPipeline
from defpatch.core.utils.configure_logging import configure_logger
from defpatch.core.utils.path_utils import PathUtils
from defpatch.dom.builder import DocumentBuilder
from defpatch.inheritance.resolver import InheritanceResolver
from defpatch.model import ExecutionReport
from defpatch.operations.parser import PatchUnitParser

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_FATAL = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="defpatch", description="Apply declarative patches to XML definitions.")
    parser.add_argument("--log-level", help="Override 'debug.level' (e.g. DEBUG, INFO).")
    parser.add_argument("--config", help="JSON settings file layered over the bundled settings.")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    p_apply = subparsers.add_parser("apply", help="Apply patch units to a base document.")
    p_apply.add_argument("base", help="The base definitions document.")
    p_apply.add_argument("patches", nargs="+", help="Patch unit documents, in load order.")
    p_apply.add_argument("--output", "-o", help="Write the result here instead of stdout.")
    p_apply.add_argument("--mod", action="append", default=[],
                         help="Declare an available capability (repeatable).")
    p_apply.add_argument("--root-collection", action="store_true",
                         help="Allow repeated children of the base root element (a collection of defs).")
    p_apply.add_argument("--no-inherit", action="store_true", help="Skip the inheritance pass.")
    p_apply.add_argument("--keep-abstract", action="store_true",
                         help="Keep abstract templates in the resolved output.")
    p_apply.add_argument("--report", help="Write the execution report as JSON to this file.")
    p_apply.add_argument("--progress", action="store_true", help="Show a progress bar.")

    p_check = subparsers.add_parser("check", help="Parse patch units and list their operations.")
    p_check.add_argument("patches", nargs="+", help="Patch unit documents.")

    return parser


def _print_summary(report: ExecutionReport) -> None:
    counts = report.counts()
    state = "✅ succeeded" if report.succeeded else "❌ failed"
    print(
        f"Patch run {state}: {len(report.units)} unit(s), {counts['Applied']} applied, "
        f"{counts['Skipped']} skipped, {counts['Failed']} failed",
        file=sys.stderr,
    )
    for entry in report.failures():
        where = f" [{entry.path}]" if entry.path else ""
        print(f"  ❌ {entry.unit} #{entry.index} {entry.kind}{where}: {entry.reason}", file=sys.stderr)


def _handle_apply(args: argparse.Namespace) -> int:
    builder = DocumentBuilder(root_children_are_list_items=True if args.root_collection else None)
    unit_parser = PatchUnitParser()

    base = builder.parse_file(args.base)
    units = [unit_parser.parse_file(path) for path in args.patches]

    capabilities = list(config_manager.get_nested("capabilities.available", [])) + list(args.mod)
    pipeline = PatchPipeline(
        resolver=InheritanceResolver(keep_abstract=args.keep_abstract),
        resolve_inheritance=not args.no_inherit,
    )
    result = pipeline.run(
        base,
        units,
        capability_query=static_capabilities(capabilities),
        show_progress=args.progress or None,
    )

    markup = result.document.to_xml()
    if args.output:
        output = PathUtils.ensure_parent_dir(Path(args.output))
        output.write_text(markup + "\n", encoding="utf-8")
        logger.info("Wrote patched document to %s", output)
    else:
        print(markup)

    if args.report:
        report_path = PathUtils.ensure_parent_dir(Path(args.report))
        with open(report_path, "w", encoding="utf-8") as f:
            json.dump(result.report.to_dict(), f, indent=2)
        logger.info("Wrote execution report to %s", report_path)

    _print_summary(result.report)
    return EXIT_OK if result.report.succeeded else EXIT_FAILED


def _handle_check(args: argparse.Namespace) -> int:
    unit_parser = PatchUnitParser()
    broken = 0
    for path in args.patches:
        unit = unit_parser.parse_file(path)
        print(f"{unit.name}: {len(unit.operations)} operation(s)")
        for index, op in enumerate(unit.operations, start=1):
            if op.parse_error:
                broken += 1
                print(f"  ❌ #{index} {op.kind}: {op.parse_error}")
            else:
                print(f"  #{index} {op.describe()}")
    return EXIT_FAILED if broken else EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point of the 'defpatch' console script."""
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else EXIT_FATAL

    if args.config:
        try:
            config_manager.load_overrides(args.config)
        except ConfigurationError as e:
            print(f"❌ Error: {e}", file=sys.stderr)
            return EXIT_FATAL

    configure_logger(
        args.log_level or config_manager.get_nested("debug.level", "WARNING"),
        config_manager.get_nested("debug.module_levels", {}),
        config_manager.get_nested("debug.silenced_loggers", {}),
    )

    if args.command is None:
        parser.print_help()
        return EXIT_FATAL

    handlers = {"apply": _handle_apply, "check": _handle_check}
    try:
        return handlers[args.command](args)
    except (MalformedDocumentError, InheritanceError) as e:
        logger.debug("Fatal error in %s", args.command, exc_info=True)
        print(f"❌ Error: {e}", file=sys.stderr)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
