"""Command-line interface for rpyfront."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rpyfront.document import TextDocument
from rpyfront.program import Program

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Parsed CLI options."""

    input_files: list[Path]
    dump_tokens: bool
    dump_ast: bool
    dump_symbols: bool
    log_level: str


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (separate function for testability)."""
    p = argparse.ArgumentParser(
        prog="rpyfront",
        description="Tokenize and parse Ren'Py scripts, reporting diagnostics",
    )
    p.add_argument("input", nargs="+", help="Input .rpy file(s)")
    p.add_argument("--tokens", action="store_true", help="Dump the token stream to stdout")
    p.add_argument("--ast", action="store_true", help="Dump the statement tree to stdout")
    p.add_argument("--symbols", action="store_true", help="Dump the scope tree to stdout")
    p.add_argument(
        "--config",
        metavar="FILE",
        help="Config file (default: auto-discover rpyfront.toml)",
    )
    p.add_argument(
        "--log-level",
        default=None,
        metavar="LEVEL",
        help="Logging level: DEBUG, INFO, WARNING, ERROR (default: WARNING)",
    )
    return p


def parse_log_level(s: str) -> str:
    """Normalize a logging level name."""
    level = s.strip().upper()
    if level not in _LOG_LEVELS:
        raise argparse.ArgumentTypeError(f"invalid log level: {s}")
    return level


def load_config(config_path: Path | None, input_dir: Path) -> dict[str, Any]:
    """Load a TOML config file, returning an empty dict on missing/absent file."""
    path = config_path if config_path is not None else input_dir / "rpyfront.toml"

    if not path.is_file():
        return {}

    with open(path, "rb") as f:
        return tomllib.load(f)


def resolve_options(args: argparse.Namespace) -> CliOptions:
    """Merge config file and CLI args into CliOptions.

    Precedence: config file < CLI flags.
    """
    input_files = [Path(p) for p in args.input]
    input_dir = input_files[0].parent
    if not input_dir.parts:
        input_dir = Path(".")

    config_path = Path(args.config) if args.config else None
    config = load_config(config_path, input_dir)

    # Log level: config < CLI
    log_level = "WARNING"
    cfg_log = config.get("log")
    if isinstance(cfg_log, dict):
        cfg_level = cfg_log.get("level")
        if isinstance(cfg_level, str):
            log_level = parse_log_level(cfg_level)
    if args.log_level is not None:
        log_level = parse_log_level(args.log_level)

    # Dumps: config < CLI (a flag can only switch a dump on)
    dumps = {"tokens": args.tokens, "ast": args.ast, "symbols": args.symbols}
    cfg_output = config.get("output")
    if isinstance(cfg_output, dict):
        for key in dumps:
            if not dumps[key] and isinstance(cfg_output.get(key), bool):
                dumps[key] = cfg_output[key]

    return CliOptions(
        input_files=input_files,
        dump_tokens=dumps["tokens"],
        dump_ast=dumps["ast"],
        dump_symbols=dumps["symbols"],
        log_level=log_level,
    )


async def parse_files(documents: list[TextDocument]) -> list[Program]:
    """Parse independent documents concurrently."""
    from rpyfront.parser import parse_document

    return list(await asyncio.gather(*(parse_document(doc) for doc in documents)))


def report(options: CliOptions, documents: list[TextDocument], programs: list[Program]) -> int:
    """Write dumps to stdout and diagnostics to stderr; return the error count."""
    from rpyfront.debug import dump_ast, dump_scopes, dump_tokens
    from rpyfront.lexer import Tokenizer

    count = 0
    for document, program in zip(documents, programs):
        if options.dump_tokens:
            dump_tokens(Tokenizer(document).tokenize(), document, file=sys.stdout)
        if options.dump_ast:
            dump_ast(program, file=sys.stdout)
        if options.dump_symbols:
            dump_scopes(program, file=sys.stdout)
        for error in program.error_list:
            print(error.format(document), file=sys.stderr)
        count += len(program.error_list)
    return count


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns exit code (0/1/2). Does not call sys.exit()."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        options = resolve_options(args)
    except argparse.ArgumentTypeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except (OSError, tomllib.TOMLDecodeError) as exc:
        print(f"error: cannot read config: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(level=options.log_level, format="%(levelname)s %(name)s: %(message)s")

    documents: list[TextDocument] = []
    for path in options.input_files:
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            print(f"error: cannot read {path}: {exc}", file=sys.stderr)
            return 2
        documents.append(TextDocument(source, str(path)))

    programs = asyncio.run(parse_files(documents))
    errors = report(options, documents, programs)
    logger.info("Parsed %d file(s), %d diagnostic(s)", len(documents), errors)
    return 1 if errors else 0
