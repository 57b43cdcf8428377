"""CLI entry point for genui."""

import argparse
import logging
from pathlib import Path

from genui import __version__
from genui.settings import DEFAULT_LOG_FILE


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="genui",
        description="Ask questions, get streamed interactive UIs in your terminal.",
    )
    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-e", "--endpoint",
        default=None,
        help=(
            "Generation endpoint URL. If omitted: GENUI_ENDPOINT env > "
            "saved setting > http://localhost:3001/api/v1/c1/generate"
        ),
    )
    parser.add_argument(
        "--system-prompt-file",
        type=Path,
        default=None,
        help="Read the system prompt from this file.",
    )
    parser.add_argument(
        "--context",
        type=Path,
        default=None,
        metavar="FILE.json",
        help='JSON object with "catalog" (list) and "preferences" (object).',
    )
    parser.add_argument(
        "--save-endpoint",
        action="store_true",
        help="Remember --endpoint for future runs.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=DEFAULT_LOG_FILE,
        help=f"Log file (default: {DEFAULT_LOG_FILE}).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log at DEBUG level.",
    )
    args = parser.parse_args()

    # The TUI owns the terminal, so logs go to a file.
    log_file = args.log_file.expanduser()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=log_file,
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    system_prompt = None
    if args.system_prompt_file is not None:
        try:
            system_prompt = args.system_prompt_file.expanduser().read_text()
        except OSError as exc:
            parser.error(f"cannot read system prompt: {exc}")

    context = None
    if args.context is not None:
        from genui.context import load_context_file
        try:
            context = load_context_file(args.context)
        except (OSError, ValueError) as exc:
            parser.error(f"cannot load context: {exc}")

    if args.save_endpoint:
        if not args.endpoint:
            parser.error("--save-endpoint requires --endpoint")
        from genui.settings import get_settings
        get_settings().set_endpoint(args.endpoint)

    from genui import chat
    chat(args.endpoint, system_prompt=system_prompt, context=context)


if __name__ == "__main__":
    main()
