"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["init", "ingest", "list", "export", "verify", "stream", "help", "exit"]

STYLE = Style.from_dict(
    {
        "prompt": "#5FAFD7 bold",
        "command": "#0088ff bold",
    }
)

WELCOME_TITLE = "chunkvault - chunked file storage on webhook attachments"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "chunkvault> "

HELP_TEXT = """Usage: chunkvault [--db PATH] [--webhook URL] [--proxy-base URL] [--debug] <command>

Commands:
  init                                Create catalog tables if they don't exist
  ingest <path> [--chunk-size N]      Split a file into chunks and upload them
  list                                List stored files
  export <file_id> [out]              Reconstruct a file ('-' writes to stdout)
  verify <file_id> [--remote]         Check chunk digests (staged copies or re-download)
  stream <file_id>                    Write a file to stdout
  help                                Show this help
  exit                                Exit REPL

Settings come from --flags, ~/.chunkvault/config.json, or the WEBHOOK and
PROXY_BASE environment variables (a .env file is read if present).

Examples:
  ingest backups/photos.tar --chunk-size 1000000
  list
  export 3 restored.tar
  stream 3 > restored.tar"""
