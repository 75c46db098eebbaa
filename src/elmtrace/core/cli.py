from __future__ import annotations

import argparse
import logging
from pathlib import Path

from elmtrace import __version__
from elmtrace.core.buffer import ByteBuffer
from elmtrace.core.config import ElmtraceConfig, load_config_file
from elmtrace.core.errors import ElmtraceError, NoPayloadError, TranscriptReadError, describe_error
from elmtrace.core.evaluator import safe_evaluate
from elmtrace.core.logging_utils import parse_level, setup_logging
from elmtrace.core.render import (
    evaluation_to_dict,
    format_number,
    render_byte_table,
    render_pid_lines,
    to_json,
)
from elmtrace.core.session import SessionState, parse_log, read_transcript, select_payload


EXIT_OK = 0
EXIT_EVAL_ERROR = 1
EXIT_INPUT_ERROR = 2

logger = logging.getLogger(__name__)


def _load_config(args: argparse.Namespace) -> ElmtraceConfig:
    if not getattr(args, "config", None):
        return ElmtraceConfig()
    path = Path(args.config).resolve()
    if not path.exists():
        raise ValueError(f"Config file not found: {path}")
    return load_config_file(path)


def _load_session(args: argparse.Namespace, config: ElmtraceConfig) -> SessionState:
    path = Path(args.log).resolve()
    text = read_transcript(path)
    logger.info("Read %d characters from %s", len(text), path)
    return parse_log(text, config.parser)


def _cmd_parse(args: argparse.Namespace) -> int:
    config = _load_config(args)
    state = _load_session(args, config)
    print(to_json(state.to_dict()))
    return EXIT_OK


def _cmd_pids(args: argparse.Namespace) -> int:
    config = _load_config(args)
    state = _load_session(args, config)
    for line in render_pid_lines(state):
        print(line)
    return EXIT_OK


def _cmd_eval(args: argparse.Namespace) -> int:
    config = _load_config(args)
    state = _load_session(args, config)

    expression = args.expression.strip()
    if not expression:
        print("Error: Empty expression")
        return EXIT_EVAL_ERROR

    try:
        lines = select_payload(state, args.pid)
        buffer = ByteBuffer.from_hex_lines(lines)
    except NoPayloadError as e:
        print(describe_error(e))
        return EXIT_EVAL_ERROR
    except ValueError as e:
        print(f"Error: {e}")
        return EXIT_EVAL_ERROR

    variable = args.variable if args.variable is not None else config.variable
    evaluation, error = safe_evaluate(expression, buffer, variable)
    if evaluation is None:
        if args.json:
            print(to_json({"error": error.to_dict(), "bytes": buffer.hex()}))
        else:
            print(describe_error(error))
        return EXIT_EVAL_ERROR

    if args.json:
        print(to_json(evaluation_to_dict(buffer, evaluation)))
    else:
        print(format_number(evaluation.result))
        print(render_byte_table(buffer, evaluation.accessed_indices))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="elmtrace",
        description="elmtrace - ELM327 session log parser and byte expression evaluator",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Console log level (default: %(default)s)",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write DEBUG logs to this file",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    def _add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("log", help="Path to the ELM327 session transcript")
        p.add_argument(
            "--config",
            default=None,
            help="YAML/JSON config file overriding parser defaults",
        )

    parse_p = subparsers.add_parser("parse", help="Parse a transcript and print the session as JSON")
    _add_common(parse_p)
    parse_p.set_defaults(func=_cmd_parse)

    pids_p = subparsers.add_parser("pids", help="List PID requests and their responses")
    _add_common(pids_p)
    pids_p.set_defaults(func=_cmd_pids)

    eval_p = subparsers.add_parser("eval", help="Evaluate a byte expression against a PID response")
    _add_common(eval_p)
    eval_p.add_argument("expression", help="Byte expression, e.g. '(B3*256+B4)/4'")
    eval_p.add_argument(
        "-V",
        "--variable",
        type=float,
        default=None,
        help="Value bound to V (default: eval.variable from config, else 0)",
    )
    eval_p.add_argument(
        "--pid",
        default=None,
        help="Evaluate against this PID request instead of the second-to-last one",
    )
    eval_p.add_argument("--json", action="store_true", help="Print the result as JSON")
    eval_p.set_defaults(func=_cmd_eval)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(console_level=parse_level(args.log_level), file_path=args.log_file)
    except ValueError as e:
        parser.error(str(e))

    try:
        return int(args.func(args))
    except TranscriptReadError as e:
        print(describe_error(e))
        return EXIT_INPUT_ERROR
    except ElmtraceError as e:
        print(describe_error(e))
        return EXIT_EVAL_ERROR
    except (ValueError, OSError) as e:
        print(f"Error: {e}")
        return EXIT_INPUT_ERROR
