"""Command-line interface: compile markdown diagrams to SVG."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from .compiler import compile_to_string
from .errors import FontNotFoundError, LayoutError, Md2IfdamError
from .font_utils import FontCatalog
from .graph import LayoutConfig
from .shapes import OSAKA_REGULAR, RenderSession

SUBCOMMANDS_HINT = "Use one of: compile, fonts."


@dataclass
class CliError(Exception):
    code: str
    message: str
    hint: Optional[str] = None
    exit_code: int = 1
    file: Optional[str] = None
    retryable: bool = True


class UsageError(Exception):
    pass


class FriendlyArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # pragma: no cover - argparse callback
        raise UsageError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = FriendlyArgumentParser(
        prog="md2ifdam",
        description="Compile markdown screen-flow diagrams to SVG.",
    )
    parser.add_argument("--error-format", choices=["text", "json"], default="text")
    parser.add_argument("--debug", action="store_true")

    subparsers = parser.add_subparsers(dest="command")

    compile_parser = subparsers.add_parser("compile", help="Compile markdown to SVG")
    compile_parser.add_argument("input", nargs="?", help="Input markdown file")
    compile_parser.add_argument("--text", help="Raw markdown source")
    compile_parser.add_argument("--stdout", action="store_true", help="Write SVG to stdout")
    compile_parser.add_argument("-o", "--output", help="Output .svg path")
    compile_parser.add_argument("--margin-x", type=float, default=30.0)
    compile_parser.add_argument("--margin-y", type=float, default=30.0)
    compile_parser.add_argument("--rank-dir", choices=["TB", "BT", "LR", "RL"], default="TB")
    compile_parser.add_argument("--font-family", default=OSAKA_REGULAR["font-family"])
    compile_parser.add_argument("--font-style", default=OSAKA_REGULAR["font-style"])
    compile_parser.add_argument("--font-weight", type=int, default=OSAKA_REGULAR["font-weight"])

    fonts_parser = subparsers.add_parser("fonts", help="List local font faces")
    fonts_parser.add_argument("--family", default="", help="Only faces of this family")

    return parser


def _read_input(path: Optional[str], text: Optional[str]) -> tuple[str, Optional[Path]]:
    if path and text is not None:
        raise CliError(
            "E_ARGS",
            "--text cannot be combined with file input",
            hint="Use either FILE or --text.",
            exit_code=2,
        )

    if text is not None:
        return text, None

    if path:
        input_path = Path(path)
        if not input_path.exists():
            raise CliError(
                "E_IO_READ",
                f"input file not found: {input_path}",
                exit_code=2,
                file=str(input_path),
            )
        try:
            return input_path.read_text(encoding="utf-8"), input_path
        except OSError as exc:
            raise CliError(
                "E_IO_READ",
                f"failed to read input file: {input_path}",
                hint=str(exc),
                exit_code=2,
                file=str(input_path),
            )

    if sys.stdin.isatty():
        raise CliError(
            "E_ARGS",
            "no input provided",
            hint="Use a subcommand with FILE, --text, or pipe stdin.",
            exit_code=2,
        )

    data = sys.stdin.read()
    if not data.strip():
        raise CliError(
            "E_ARGS",
            "stdin was empty",
            hint="Pipe markdown into stdin.",
            exit_code=2,
        )
    return data, None


def _write_text(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise CliError(
            "E_IO_WRITE",
            f"failed to write output file: {path}",
            hint=str(exc),
            exit_code=4,
            file=str(path),
        )


def _error_from_exception(exc: Exception) -> CliError:
    if isinstance(exc, CliError):
        return exc
    if isinstance(exc, FontNotFoundError):
        return CliError(
            exc.code,
            str(exc),
            hint="Install the font or pick an installed one with --font-family (see `md2ifdam fonts`).",
            exit_code=3,
            retryable=True,
        )
    if isinstance(exc, LayoutError):
        return CliError(
            exc.code,
            str(exc),
            hint="Check the Graphviz installation or uninstall it to use the built-in layout.",
            exit_code=3,
            retryable=False,
        )
    if isinstance(exc, Md2IfdamError):
        return CliError(exc.code, str(exc), exit_code=3, retryable=False)
    return CliError(
        "E_INTERNAL",
        str(exc) or exc.__class__.__name__,
        hint="Re-run with --debug to see traceback.",
        exit_code=1,
        retryable=False,
    )


def _emit_error(err: CliError, *, error_format: str) -> None:
    if error_format == "json":
        payload = {
            "ok": False,
            "code": err.code,
            "message": err.message,
            "file": err.file,
            "hint": err.hint,
            "retryable": err.retryable,
        }
        sys.stderr.write(json.dumps(payload) + "\n")
        return

    sys.stderr.write(f"error[{err.code}]: {err.message}\n")
    if err.hint:
        sys.stderr.write(f"hint: {err.hint}\n")


def _handle_compile(args: argparse.Namespace) -> int:
    if args.stdout and args.output:
        raise CliError(
            "E_ARGS",
            "--stdout and --output are mutually exclusive",
            hint="Choose either --stdout or --output.",
            exit_code=2,
        )

    source, source_path = _read_input(args.input, args.text)
    config = LayoutConfig(margin_x=args.margin_x, margin_y=args.margin_y, rank_dir=args.rank_dir)
    session = RenderSession(
        base_font={
            "font-family": args.font_family,
            "font-style": args.font_style,
            "font-weight": args.font_weight,
        }
    )
    svg_text = compile_to_string(source, config, session)

    if args.stdout or (source_path is None and not args.output):
        sys.stdout.write(svg_text)
        return 0

    output_path = Path(args.output) if args.output else source_path.with_suffix(".svg")
    _write_text(output_path, svg_text)
    print(f"Wrote {output_path}")
    return 0


def _handle_fonts(args: argparse.Namespace) -> int:
    faces = FontCatalog().find({"font-family": args.family})
    for face in faces:
        print(f"{face.family}\t{face.style}\t{face.weight}\t{face.src}")
    if not faces:
        sys.stderr.write("no matching font faces found\n")
    return 0


def _sniff_error_format(raw_argv: List[str]) -> str:
    """Error format requested on the command line, readable before argparse runs."""
    for idx, arg in enumerate(raw_argv):
        if arg == "--error-format" and idx + 1 < len(raw_argv):
            return raw_argv[idx + 1]
        if arg.startswith("--error-format="):
            return arg.split("=", 1)[1]
    return "text"


def main(argv: Optional[Iterable[str]] = None) -> int:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    parser = _build_parser()

    if not raw_argv:
        err = CliError("E_ARGS", "missing subcommand", hint=SUBCOMMANDS_HINT, exit_code=2)
        _emit_error(err, error_format="text")
        return err.exit_code

    debug_enabled = "--debug" in raw_argv or os.getenv("MD2IFDAM_DEBUG") == "1"
    if debug_enabled:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    error_format = _sniff_error_format(raw_argv)

    try:
        args = parser.parse_args(raw_argv)
        error_format = args.error_format

        if args.command == "compile":
            return _handle_compile(args)
        if args.command == "fonts":
            return _handle_fonts(args)

        raise CliError("E_ARGS", "missing subcommand", hint=SUBCOMMANDS_HINT, exit_code=2)
    except UsageError as exc:
        err = CliError("E_ARGS", str(exc), hint=SUBCOMMANDS_HINT, exit_code=2)
        _emit_error(err, error_format=error_format)
        return err.exit_code
    except Exception as exc:  # pragma: no cover - exercised in integration tests
        err = _error_from_exception(exc)
        _emit_error(err, error_format=error_format)
        if debug_enabled:
            traceback.print_exc(file=sys.stderr)
        return err.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
