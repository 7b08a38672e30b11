"""Command parser for CLI input."""

import shlex
from typing import List, Optional, Tuple

from cli.models import (
    CommandRequest,
    ExportCommand,
    GlobalOptions,
    IngestCommand,
    InitCommand,
    ListCommand,
    StreamCommand,
    VerifyCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


GLOBAL_VALUE_FLAGS = {
    "--db": "db_path",
    "--webhook": "webhook",
    "--proxy-base": "proxy_base",
}


def parse_global_options(argv: List[str]) -> Tuple[GlobalOptions, List[str]]:
    """
    Split leading global flags from the command tokens.

    Args:
        argv: Arguments after the program name

    Returns:
        Tuple of (GlobalOptions, remaining tokens)

    Raises:
        ParseError: If a flag is missing its value
    """
    values = {}
    debug = False
    rest: List[str] = []
    i = 0
    while i < len(argv):
        token = argv[i]
        name, has_inline, inline = token.partition("=")
        if token == "--debug":
            debug = True
        elif name in GLOBAL_VALUE_FLAGS:
            if has_inline:
                values[GLOBAL_VALUE_FLAGS[name]] = inline
            else:
                if i + 1 >= len(argv):
                    raise ParseError(f"{name} requires a value")
                i += 1
                values[GLOBAL_VALUE_FLAGS[name]] = argv[i]
        else:
            rest.append(token)
        i += 1
    return GlobalOptions(debug=debug, **values), rest


def parse_command(input_line: str) -> CommandRequest:
    """Parse a REPL line into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    return parse_tokens(tokens)


def parse_tokens(tokens: List[str]) -> CommandRequest:
    """Parse already-split tokens (command name first)."""
    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "init":
        return _parse_no_args("init", tokens[1:], InitCommand)
    elif command_name == "ingest":
        return _parse_ingest(tokens[1:])
    elif command_name == "list":
        return _parse_no_args("list", tokens[1:], ListCommand)
    elif command_name == "export":
        return _parse_export(tokens[1:])
    elif command_name == "verify":
        return _parse_verify(tokens[1:])
    elif command_name == "stream":
        return _parse_stream(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_file_id(value: str) -> int:
    try:
        file_id = int(value)
    except ValueError:
        raise ParseError(f"file_id must be an integer, got '{value}'")
    if file_id <= 0:
        raise ParseError(f"file_id must be positive, got {file_id}")
    return file_id


def _parse_no_args(name: str, args: List[str], factory):
    if args:
        raise ParseError(f"{name} takes no arguments")
    return factory()


def _parse_ingest(args: List[str]) -> IngestCommand:
    """Parse 'ingest <path> [--chunk-size N]' command."""
    path: Optional[str] = None
    chunk_size: Optional[int] = None
    i = 0
    while i < len(args):
        arg = args[i]
        name, has_inline, inline = arg.partition("=")
        if name == "--chunk-size":
            if has_inline:
                raw = inline
            elif i + 1 < len(args):
                i += 1
                raw = args[i]
            else:
                raise ParseError("--chunk-size requires a value")
            try:
                chunk_size = int(raw)
            except ValueError:
                raise ParseError(f"--chunk-size must be an integer, got '{raw}'")
            if chunk_size <= 0:
                raise ParseError("--chunk-size must be positive")
        elif path is None:
            path = arg
        else:
            raise ParseError(f"ingest takes one path, got extra argument '{arg}'")
        i += 1

    if path is None:
        raise ParseError("ingest requires a path: ingest <path> [--chunk-size N]")
    return IngestCommand(path=path, chunk_size=chunk_size)


def _parse_export(args: List[str]) -> ExportCommand:
    """Parse 'export <file_id> [out]' command."""
    if not 1 <= len(args) <= 2:
        raise ParseError("export requires <file_id> and optionally <out> ('-' for stdout)")
    out = args[1] if len(args) > 1 else None
    return ExportCommand(file_id=_parse_file_id(args[0]), out=out)


def _parse_verify(args: List[str]) -> VerifyCommand:
    """Parse 'verify <file_id> [--remote]' command."""
    remote = "--remote" in args
    positional = [a for a in args if a != "--remote"]
    if len(positional) != 1:
        raise ParseError("verify requires exactly 1 argument: <file_id> [--remote]")
    return VerifyCommand(file_id=_parse_file_id(positional[0]), remote=remote)


def _parse_stream(args: List[str]) -> StreamCommand:
    """Parse 'stream <file_id>' command."""
    if len(args) != 1:
        raise ParseError("stream requires exactly 1 argument: <file_id>")
    return StreamCommand(file_id=_parse_file_id(args[0]))
