from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from callstack import __version__
from callstack.config import Config, OutputFormat, configure_logging, get_config, load_config, set_config
from callstack.errors import CallTreeStateError, ErrorCode, handle_exception, is_verbose, set_verbose
from callstack.record_set import build_record_set
from callstack.records import Record, RecordKind, SpanRecord
from callstack.registry import load_registries
from callstack.trace.loader import load_call_tree
from callstack.trace.span_model import SpanAlign

logger = logging.getLogger("callstack.cli")

INDENT = "  "
KIND_MARKERS = {
    RecordKind.SPAN: "+",
    RecordKind.EXCEPTION: "!",
    RecordKind.ANNOTATION: "-",
    RecordKind.PARAMETER: "-",
}


def _format_record_line(record: Record) -> str:
    """One line of the indented text listing."""
    marker = KIND_MARKERS[record.kind]
    text = f"{INDENT * record.depth}{marker} [{record.id}<{record.parent_id}] {record.title}"
    if record.argument:
        text += f"  {record.argument}"
    if isinstance(record, SpanRecord) and record.authorized:
        text += f"  ({record.elapsed}ms {record.application_id} {record.service_type.name})"
    if not record.authorized:
        text += "  (hidden)"
    return text


def render_records(records: Sequence[Record], output_format: OutputFormat) -> str:
    """Serialize rows as a JSON array or an indented text listing."""
    if output_format == OutputFormat.JSON:
        return json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False)
    return "\n".join(_format_record_line(r) for r in records)


def _cmd_render(args: argparse.Namespace) -> int:
    config = get_config()
    tree_path = Path(args.tree)

    try:
        service_types, annotation_keys = load_registries(config.registry_file)
    except (FileNotFoundError, ValueError) as e:
        handle_exception(e, ErrorCode.E010)
        return 1

    try:
        document = load_call_tree(tree_path)
    except ValueError as e:
        handle_exception(e, ErrorCode.E201)
        return 1

    def is_filtered(align: SpanAlign) -> bool:
        return config.is_hidden(align.application_id)

    records = build_record_set(
        document.tree,
        service_types,
        annotation_keys,
        parameters=document.parameters,
        is_filtered=is_filtered if config.hidden_applications else None,
        filtered_title=config.filtered_title,
    )
    output = render_records(records, config.output_format)

    if args.out:
        out_path = Path(args.out)
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(output + "\n", encoding="utf-8")
        except OSError as e:
            handle_exception(e, ErrorCode.E300, str(out_path))
            return 1
        print(f"{len(records)} records written to {out_path}")
    else:
        print(output)
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    """Validate call tree documents (and optionally a registry file) against schemas."""
    from callstack.validation import validate_call_tree, validate_registry

    results = [validate_call_tree(path) for path in args.files]
    if args.registry:
        results.append(validate_registry(args.registry))

    for result in results:
        print(result.summary())

    # Return 0 if all valid, 1 if any invalid
    return 0 if all(r.valid for r in results) else 1


def _cmd_show_config(args: argparse.Namespace) -> int:
    print(json.dumps(get_config().to_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="callstack",
        description="Flatten trace call trees into call stack records",
    )

    # Global flags
    p.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging and full tracebacks on errors",
    )
    p.add_argument("--env-file", help="Path to a .env file (default: search upward from cwd)")
    p.add_argument("--log-level", help="Log level (default: WARNING or CALLSTACK_LOG_LEVEL)")
    p.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    p_render = sub.add_parser("render", help="Render a call tree document as records")
    p_render.add_argument("--tree", required=True, help="Path to a call tree YAML/JSON file")
    p_render.add_argument("--registry", help="YAML file with extra service types and annotation keys")
    p_render.add_argument(
        "--format",
        choices=[f.value for f in OutputFormat],
        help="Output format: text (default) or json",
    )
    p_render.add_argument("--out", help="Write to this file instead of stdout")
    p_render.add_argument(
        "--hide-application",
        action="append",
        dest="hidden_applications",
        metavar="NAME",
        help="Render spans of this application as hidden rows (repeatable)",
    )
    p_render.add_argument("--filtered-title", help="Title of hidden rows (default: ...)")
    p_render.set_defaults(func=_cmd_render)

    p_val = sub.add_parser("validate", help="Validate call tree documents against the schema")
    p_val.add_argument("files", nargs="+", help="Call tree YAML/JSON files")
    p_val.add_argument("--registry", help="Also validate this registry YAML file")
    p_val.set_defaults(func=_cmd_validate)

    p_cfg = sub.add_parser("show-config", help="Print the resolved configuration")
    p_cfg.set_defaults(func=_cmd_show_config)

    return p


def _load_cli_config(args: argparse.Namespace) -> Config:
    overrides = {
        "registry_file": getattr(args, "registry", None) if args.cmd == "render" else None,
        "output_format": getattr(args, "format", None),
        "hidden_applications": getattr(args, "hidden_applications", None),
        "filtered_title": getattr(args, "filtered_title", None),
        "log_level": "DEBUG" if args.verbose else args.log_level,
    }
    return load_config(env_file=args.env_file, cli_overrides=overrides)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    set_verbose(args.verbose)

    try:
        config = _load_cli_config(args)
    except ValueError as e:
        handle_exception(e, ErrorCode.E002)
        return 1
    set_config(config)
    configure_logging(config.log_level)
    logger.debug("Configuration: %s", config.to_dict())

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted by user", file=sys.stderr)
        return 130
    except FileNotFoundError as e:
        handle_exception(e, ErrorCode.E005, str(e))
        return 1
    except CallTreeStateError as e:
        handle_exception(e, ErrorCode.E200, str(e))
        return 1
    except Exception as e:
        if is_verbose():
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {e}", file=sys.stderr)
            print("Run with --verbose for full traceback", file=sys.stderr)
        return 1


def entrypoint() -> None:
    raise SystemExit(main())
