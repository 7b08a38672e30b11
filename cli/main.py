"""CLI entry point."""

import os
import sys
from typing import List, Optional

from common.logging_config import setup_logging
from cli.commands import VaultContext, dispatch_command, set_context
from cli.config import Config
from cli.constants import HELP_TEXT
from cli.parser import ParseError, parse_global_options, parse_tokens


def run(argv: List[str], config: Optional[Config] = None, context: Optional[VaultContext] = None) -> int:
    """
    Run one command, or the REPL when no command is given.

    Args:
        argv: Arguments after the program name
        config: Optional Config (testing)
        context: Optional pre-built VaultContext (testing)

    Returns:
        Process exit code
    """
    try:
        options, tokens = parse_global_options(argv)
    except ParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    log_level = 'DEBUG' if options.debug else os.getenv('LOG_LEVEL', 'INFO')
    # stdout carries file bytes for 'stream' and 'export -'
    logger = setup_logging('cli', log_level=log_level, stream=sys.stderr)
    if options.debug:
        logger.info("Debug logging enabled")

    if tokens and tokens[0] in ('help', '--help', '-h'):
        print(HELP_TEXT)
        return 0

    if context is None:
        config = config or Config()
        config.override(
            db_path=options.db_path,
            webhook=options.webhook,
            proxy_base=options.proxy_base,
        )
        context = VaultContext(config)
    set_context(context)

    try:
        if not tokens:
            from cli.repl import repl_loop
            repl_loop(context)
            return 0

        try:
            cmd_obj = parse_tokens(tokens)
        except ParseError as e:
            print(f"Error: {e}", file=sys.stderr)
            print("Run 'chunkvault help' for usage.", file=sys.stderr)
            return 2

        result = dispatch_command(cmd_obj, context)
        if result.message:
            print(result.message, file=sys.stdout if result.success else sys.stderr)
        return 0 if result.success else 1
    except KeyboardInterrupt:
        print("Aborted.", file=sys.stderr)
        return 130
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        context.close()
        set_context(None)


def main() -> None:
    """Entry point for CLI."""
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
