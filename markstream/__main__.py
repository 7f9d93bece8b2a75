import argparse
import asyncio
import logging
import os
import sys

from markstream.config import DEFAULT_REVEAL_DELAY, RevealMode, StreamConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="markstream",
        description="markstream - render streaming Markdown in the terminal",
    )
    parser.add_argument(
        "file", nargs="?", default=None,
        help="Markdown file to replay as a stream (default: read stdin)",
    )
    parser.add_argument(
        "--command", "-c", nargs=argparse.REMAINDER, default=None,
        help="Run a command and stream its standard output",
    )
    parser.add_argument(
        "--mode", choices=[mode.value for mode in RevealMode],
        default=RevealMode.CHUNK.value,
        help="Reveal granularity (default: chunk)",
    )
    parser.add_argument(
        "--delay", type=float, default=DEFAULT_REVEAL_DELAY,
        help=f"Milliseconds between revealed tokens (default: {DEFAULT_REVEAL_DELAY})",
    )
    parser.add_argument(
        "--chunk-size", type=int, default=16,
        help="Characters per fragment when replaying a file (default: 16)",
    )
    parser.add_argument(
        "--interval", type=float, default=0.02,
        help="Seconds between fragments when replaying a file (default: 0.02)",
    )
    parser.add_argument(
        "--theme", choices=["light", "dark"], default="light",
        help="Colour theme (default: light)",
    )
    parser.add_argument(
        "--no-math", action="store_true",
        help="Leave $$ blocks as plain markdown",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Log engine activity",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> StreamConfig:
    return StreamConfig(
        reveal_mode=RevealMode(args.mode),
        reveal_delay=args.delay,
    )


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.file and not os.path.exists(args.file):
        print(f"Error: file not found: {args.file}")
        return 1
    if not args.file and not args.command and sys.stdin.isatty():
        parser.print_usage()
        print("Error: give a FILE, --command, or pipe markdown on stdin")
        return 1

    from markstream.ui.console import make_console
    console = make_console(args.theme)

    if args.verbose:
        from rich.logging import RichHandler
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )

    # Create source
    from markstream.stream import producers
    if args.command:
        source = producers.CommandSource(args.command)
    elif args.file:
        source = producers.file_source(
            args.file, chunk_size=args.chunk_size, interval=args.interval
        )
    else:
        source = producers.stdin_source()

    # Create view
    from markstream.ui.components import math_panel
    from markstream.ui.markdown_stream import StreamingMarkdown
    view = StreamingMarkdown(
        console, render_math=None if args.no_math else math_panel
    )

    from markstream.app import MarkstreamApp
    app = MarkstreamApp(source, view, config=config_from_args(args))
    return asyncio.run(app.run())


if __name__ == "__main__":
    sys.exit(main())
