#!/usr/bin/env python3
"""
catalina-bootstrap - command line entry point

Usage:
    catalina-bootstrap [host args...] start        Initialise and start the host
    catalina-bootstrap [host args...] stop         Initialise and stop the host
    catalina-bootstrap [host args...] configtest   Check the host configuration

The command may also come first, and defaults to start. Every other
argument is passed to the host's init(). Exit status is 0 on success
and 1 when bootstrap fails or the configuration check does not pass.
"""

import argparse
import sys
from typing import Callable, Optional, Sequence

from core.logging import configure_logging, get_logger
from manager.bootstrap import Bootstrap
from tools.loading import BootstrapError


logger = get_logger(__name__)


def cmd_start(bootstrap: Bootstrap, arguments: list[str]) -> int:
    """Initialise and start the host"""
    bootstrap.load(arguments)
    bootstrap.start()
    return 0


def cmd_stop(bootstrap: Bootstrap, arguments: list[str]) -> int:
    """Initialise and stop the host"""
    bootstrap.load(arguments)
    bootstrap.stop()
    return 0


def cmd_configtest(bootstrap: Bootstrap, arguments: list[str]) -> int:
    """Check that the host can be initialised"""
    if bootstrap.config_test(arguments):
        logger.info("Configuration test passed")
        return 0
    logger.error("Configuration test failed")
    return 1


COMMANDS: dict[str, Callable[[Bootstrap, list[str]], int]] = {
    "start": cmd_start,
    "stop": cmd_stop,
    "configtest": cmd_configtest,
}

DEFAULT_COMMAND = "start"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalina-bootstrap",
        description="Assemble the loading scopes and drive the host application",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser


def split_command(
    parser: argparse.ArgumentParser,
    arguments: list[str],
) -> tuple[str, list[str]]:
    """
    Pick the command out of the remaining arguments.

    The command is the last argument (as the startup scripts pass it) or
    the first one; everything else goes to the host.
    """
    if not arguments:
        return DEFAULT_COMMAND, []
    if arguments[-1] in COMMANDS:
        return arguments[-1], arguments[:-1]
    if arguments[0] in COMMANDS:
        return arguments[0], arguments[1:]
    parser.error(
        f"command {arguments[-1]!r} does not exist (choose from {', '.join(COMMANDS)})"
    )


def main(
    argv: Optional[Sequence[str]] = None,
    bootstrap: Optional[Bootstrap] = None,
) -> int:
    parser = build_parser()
    args, remaining = parser.parse_known_args(argv)
    command, host_arguments = split_command(parser, remaining)

    configure_logging(args.log_level)

    bootstrap = bootstrap or Bootstrap()
    try:
        return COMMANDS[command](bootstrap, host_arguments)
    except BootstrapError as e:
        logger.error("Bootstrap failed", command=command, error=str(e))
        bootstrap.close()
        return 1
    finally:
        # A started host keeps its scopes until the process exits
        if command != "start":
            bootstrap.close()


if __name__ == "__main__":
    sys.exit(main())
