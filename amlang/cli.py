"""
amlang - Command Line Interface

Usage:
    amlang                                  start the interactive REPL
    amlang algs.am [--ast] [--ast-format text|json]
    amlang algs.am --call "SafeDiv(1, 0)"
    python -m amlang algs.am --call "Add(1, 4)"
"""

import sys
import argparse

from .ast_nodes import format_definition, format_tree
from .evaluator import DEFAULT_MAX_EVAL_DEPTH, Registry
from .interpreter import (
    InterpreterError, Session, parse_file, program_to_json
)
from .repl import run_repl


def _depth_limit(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid depth: {text!r}") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"depth must be at least 1, got {value}")
    return value


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="amlang",
        description="amlang: define algorithms with case expressions and pipelines, then call them",
    )
    parser.add_argument("input", nargs="?", help="Path to an .am source file (omit for the REPL)")
    parser.add_argument(
        "--ast",
        action="store_true",
        help="Print the parsed algorithm definitions",
    )
    parser.add_argument(
        "--ast-format",
        choices=["text", "json"],
        default="text",
        dest="ast_format",
        help="Format used by --ast (default: text)",
    )
    parser.add_argument(
        "--call",
        metavar="EXPR",
        help='Evaluate an expression against the file\'s algorithms, e.g. --call "Add(1, 4)"',
    )
    parser.add_argument(
        "--max-depth",
        type=_depth_limit,
        default=DEFAULT_MAX_EVAL_DEPTH,
        dest="max_depth",
        help=f"Maximum nesting of algorithm calls (default: {DEFAULT_MAX_EVAL_DEPTH})",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print phase info to stderr",
    )
    return parser


def main(argv=None):
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.input is None:
        if args.ast or args.call is not None:
            parser.error("--ast and --call need an input file")
        run_repl(Session(debug=args.debug, max_eval_depth=args.max_depth))
        return

    try:
        program = parse_file(args.input, debug=args.debug)
    except (OSError, UnicodeDecodeError) as e:
        print(f"[amlang] Error: could not read {args.input!r}: {e}", file=sys.stderr)
        sys.exit(1)
    except InterpreterError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    defs = program.definitions
    if not defs and program.expression is None:
        print(f"[amlang] No algorithms found in {args.input}", file=sys.stderr)
        sys.exit(1)

    if args.ast:
        if args.ast_format == "json":
            print(program_to_json(program))
        else:
            for defn in defs:
                print(format_definition(defn))
            if program.expression is not None:
                print("Expression")
                print(format_tree(program.expression, 1))

    session = Session(Registry(defs), debug=args.debug, max_eval_depth=args.max_depth)

    if args.call is not None:
        result = session.evaluate(args.call)
    elif program.expression is not None:
        result = session.evaluate_ast(program.expression)
    else:
        if not args.ast:
            _print_summary(defs, args.input)
        return

    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        sys.exit(1)
    print(result.format_value())


def _print_summary(defs, path):
    print(f"Loaded {len(defs)} algorithm(s):")
    for defn in defs:
        print(f"  {defn.signature}")
    print(f"Try:  amlang {path} --call \"{defs[0].name}(1,0)\"")


if __name__ == "__main__":
    main()
