import sys
import logging
import setproctitle
from typing import List, Optional

from itest_runner.config import effective_settings as config
from itest_runner.console import execute_command
from itest_runner.log.setup import setup_logging

log = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    """The entry point of the test runner. Returns the process exit code."""
    args = list(sys.argv[1:] if argv is None else argv)

    verbose = config.VERBOSE_LOGGING
    if "--verbose" in args:
        verbose = True
        args.remove("--verbose")
    setup_logging(logging.DEBUG if verbose else logging.INFO)
    setproctitle.setproctitle(config.PROCESS_TITLE)

    command = args[0].lower() if args else "run"
    return execute_command(command, args[1:])


if __name__ == "__main__":
    sys.exit(main())
