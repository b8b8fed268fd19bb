"""
CLI entry point for apkbuild-lint.

Usage:
    apkbuild-lint                      Lint ./APKBUILD
    apkbuild-lint <path> [<path>...]   Lint files, or the APKBUILD inside directories

Exit status is 0 when no violations were found, 1 when at least one script
has violations, and 2 when a target is missing or cannot be parsed.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Sequence

from apkbuild_lint import __version__
from apkbuild_lint.config import ConfigError, LinterConfig
from apkbuild_lint.parser import ParseError
from apkbuild_lint.reporting import Reporter
from apkbuild_lint.rules import APKBUILDLinter

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_FATAL = 2


class TargetNotFoundError(Exception):
    """A path given on the command line does not exist."""
    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"{path}: no such file or directory")


def resolve_targets(paths: Sequence[str], build_script: str = "APKBUILD") -> List[Path]:
    """
    Map command line arguments to build script paths.

    Directories resolve to the build script inside them; no arguments means
    the build script in the working directory. Every target is checked
    before any is linted.
    """
    targets = []
    for arg in paths or [build_script]:
        path = Path(arg)
        if path.is_dir():
            path = path / build_script
        if not path.exists():
            raise TargetNotFoundError(path)
        targets.append(path)
    return targets


def main(argv: Sequence[str] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="apkbuild-lint",
        description="Check APKBUILD files for style violations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--version', action='version', version=f'apkbuild-lint {__version__}')
    parser.add_argument('paths', nargs='*', metavar='PATH',
                        help='APKBUILD file or directory containing one')
    args = parser.parse_args(argv)

    # Before LinterConfig, which can log warnings
    logging.basicConfig(level=logging.WARNING, stream=sys.stderr,
                        format="%(levelname)s %(name)s: %(message)s")

    try:
        config = LinterConfig()
    except ConfigError as e:
        print(f"apkbuild-lint: {e}", file=sys.stderr)
        return EXIT_FATAL

    logging.getLogger().setLevel(config.log_level)

    try:
        targets = resolve_targets(args.paths, config.build_script)
    except TargetNotFoundError as e:
        print(f"apkbuild-lint: {e}", file=sys.stderr)
        return EXIT_FATAL

    linter = APKBUILDLinter(disabled=config.disabled_checks)
    reporter = Reporter(sys.stderr)
    failed = False

    for path in targets:
        try:
            violations = linter.lint_file(path)
        except (OSError, ParseError) as e:
            print(f"apkbuild-lint: {e}", file=sys.stderr)
            logger.debug("Failed to lint %s", path, exc_info=True)
            failed = True
            continue
        count = reporter.report(str(path), violations)
        logger.info("%s: %d violations", path, count)

    if failed:
        return EXIT_FATAL
    return EXIT_VIOLATIONS if reporter.violations_found else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
