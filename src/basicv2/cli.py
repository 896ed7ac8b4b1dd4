"""
Command-line interface: `basicv2 <command> ...`

    lint FILE                       static findings, exit 1 when not clean
    run FILE [--input V ...]        simulate and print the screen
    export FILE -o OUT.prg          encode to PRG
    list FILE.prg                   decode a PRG back to text
    repair FILE [--intent I]        normalize + repair, print program or report
    template PROMPT                 print the template program for a prompt
"""

import argparse
import logging
import sys
from typing import Iterator, List, Optional

from basicv2.analyzer import analyze_program
from basicv2.backends.prg import decode_program, save_prg_file
from basicv2.config import ToolkitConfig, load_config
from basicv2.errors import BasicV2Error
from basicv2.examples import detect_prompt_intent, generate_program_from_prompt
from basicv2.interpreter import InputRequest, execute_program
from basicv2.pipeline import repair_until_clean
from basicv2.repair import INTENTS, RepairContext
from basicv2.serialization import (
    pipeline_result_to_json,
    pipeline_result_to_yaml,
    run_result_to_dict,
    to_json,
)

logger = logging.getLogger(__name__)


def _read_text(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise BasicV2Error(f"Cannot read {path}: {e}") from e


def _read_bytes(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise BasicV2Error(f"Cannot read {path}: {e}") from e


def _scripted_inputs(values: List[str]):
    replies: Iterator[str] = iter(values)

    def provide(request: InputRequest) -> str:
        reply = next(replies, "0")
        logger.debug("INPUT %s on line %d <- %r", request.variable_name, request.line_number, reply)
        return reply

    return provide


def cmd_lint(args, config: ToolkitConfig) -> int:
    report = analyze_program(_read_text(args.file))
    for finding in report.findings:
        print(finding)
    if report.clean:
        print(f"OK ({report.line_count} lines)")
        return 0
    return 1


def cmd_run(args, config: ToolkitConfig) -> int:
    result = execute_program(
        _read_text(args.file),
        input_provider=_scripted_inputs(args.input or []),
        max_steps=config.max_steps,
    )
    if args.format == "json":
        print(to_json(run_result_to_dict(result)))
        return 0

    rows = [row.rstrip() for row in result.screen]
    while rows and not rows[-1]:
        rows.pop()
    for row in rows:
        print(row)
    for message in result.logs:
        print(f"# {message}", file=sys.stderr)
    print(f"# border={result.border} background={result.background} steps={result.steps}", file=sys.stderr)
    return 0


def cmd_export(args, config: ToolkitConfig) -> int:
    save_prg_file(_read_text(args.file), args.output)
    print(f"Wrote {args.output}")
    return 0


def cmd_list(args, config: ToolkitConfig) -> int:
    print(decode_program(_read_bytes(args.file)))
    return 0


def cmd_repair(args, config: ToolkitConfig) -> int:
    intent = args.intent or (detect_prompt_intent(args.prompt) if args.prompt else config.default_intent)
    context = RepairContext(intent=intent, original_prompt=args.prompt or "")
    result = repair_until_clean(
        _read_text(args.file),
        context,
        max_attempts=config.max_repair_attempts,
        threshold=config.confidence_threshold,
    )
    if args.format == "json":
        print(pipeline_result_to_json(result))
    elif args.format == "yaml":
        print(pipeline_result_to_yaml(result), end="")
    else:
        print(result.program)
        for note in result.notes:
            print(f"# {note}", file=sys.stderr)
        print(f"# status={result.status} score={result.confidence.score}", file=sys.stderr)
    return 0 if not result.final_findings else 1


def cmd_template(args, config: ToolkitConfig) -> int:
    generated = generate_program_from_prompt(" ".join(args.prompt))
    print(f"REM {generated.rationale}", file=sys.stderr)
    print(generated.code)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="basicv2", description="BASIC V2 lint / run / export / repair toolkit")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("lint", help="Report dialect violations")
    p.add_argument("file")
    p.set_defaults(func=cmd_lint)

    p = sub.add_parser("run", help="Run a program in the simulator")
    p.add_argument("file")
    p.add_argument("--input", nargs="*", help="Replies for INPUT statements, in order")
    p.add_argument("--format", choices=["text", "json"], default="text")
    p.set_defaults(func=cmd_run)

    p = sub.add_parser("export", help="Encode a program as a PRG file")
    p.add_argument("file")
    p.add_argument("-o", "--output", required=True, help="Output .prg path")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("list", help="List a PRG file as program text")
    p.add_argument("file")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("repair", help="Normalize and repair a program")
    p.add_argument("file")
    p.add_argument("--intent", choices=INTENTS)
    p.add_argument("--prompt", help="Original request text (used to infer the intent)")
    p.add_argument("--format", choices=["text", "json", "yaml"], default="text")
    p.set_defaults(func=cmd_repair)

    p = sub.add_parser("template", help="Print a template program for a request")
    p.add_argument("prompt", nargs="+")
    p.set_defaults(func=cmd_template)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else config.log_level,
            format="%(levelname)s %(name)s: %(message)s",
        )
        return args.func(args, config)
    except BasicV2Error as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
