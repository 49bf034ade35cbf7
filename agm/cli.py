"""
agm - manage and synchronize AI coding agent skills.

Run without arguments for the interactive menu.
"""

from __future__ import annotations

import argparse
import sys
from typing import List, NoReturn, Optional

from . import __version__
from .commands.add import add_skills
from .commands.link import link_to_project
from .commands.manage import list_skills, manage_skills
from .commands.sync import sync_skills
from .config import ConfigManager
from .git_ops import GitManager
from .logger import get_log_file_path, get_logger, setup_logger
from .tui import (
    console,
    format_menu_choices,
    prompt_toolkit_menu,
    render_banner,
    render_error,
    render_info,
    render_muted,
)

logger = get_logger(__name__)

EXIT_INTERRUPTED = 130


class AgmArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        render_error(message, stderr=True)
        self.print_help()
        raise SystemExit(1)


def build_parser() -> AgmArgumentParser:
    parser = AgmArgumentParser(
        prog="agm",
        description=__doc__.strip(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("--version", "-v", action="store_true", help="Show version number")
    parser.add_argument("--config", action="store_true", help="Show configuration")
    parser.add_argument("--sync", action="store_true", help="Sync skills from registry (non-interactive)")
    parser.add_argument("--verbose", action="store_true", help="Write a debug log to <agm home>/logs")
    parser.add_argument("--help", "-h", action="store_true", help="Show this help message")
    return parser


def show_config(config: ConfigManager) -> None:
    render_banner(__version__)
    render_info(f"Config directory: {config.home_dir}")
    console.print()
    console.print_json(data=config.load_config().to_dict())


def main_menu(config: ConfigManager, git: GitManager) -> None:
    items = [
        {"title": "📥 Import skills", "value": "add"},
        {"title": "🔗 Link to project", "value": "link"},
        {"title": "⚙️  Manage skills", "value": "manage"},
        {"title": "📋 List skills", "value": "list"},
        {"title": "👋 Exit", "value": "exit"},
    ]
    while True:
        render_banner(__version__)
        selection = prompt_toolkit_menu(format_menu_choices(items), message="What would you like to do?")
        if not selection or selection == "exit":
            render_muted("\nGoodbye! 👋")
            return

        if selection == "add":
            add_skills(config, git)
        elif selection == "link":
            link_to_project(config)
        elif selection == "manage":
            manage_skills(config, git)
        elif selection == "list":
            list_skills(config)


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        console.print(f"agm version {__version__}", highlight=False)
        return
    if args.help:
        render_banner(__version__)
        parser.print_help()
        return

    config = ConfigManager()
    if args.verbose:
        setup_logger(config.log_dir)
        render_muted(f"Logging to {get_log_file_path()}")

    if args.config:
        show_config(config)
        return

    git = GitManager()
    try:
        if args.sync:
            render_banner(__version__)
            if sync_skills(config, git, interactive=False) is None:
                raise SystemExit(1)
            return
        main_menu(config, git)
    except KeyboardInterrupt:
        render_muted("\nGoodbye! 👋")
        logger.info("Interrupted by user")
        raise SystemExit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    main(sys.argv[1:])
