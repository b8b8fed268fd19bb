"""
Diagnostic output for lint violations.
"""

import sys
from typing import Iterable, TextIO

from apkbuild_lint.violations import Violation


def format_violation(name: str, violation: Violation) -> str:
    """Render ``name:line:col: message``, or ``name: message`` without a position."""
    if violation.position is None:
        return f"{name}: {violation.message}"
    return f"{name}:{violation.position}: {violation.message}"


class Reporter:
    """Writes violations to a stream and remembers whether any were seen."""

    def __init__(self, stream: TextIO = None):
        self.stream = stream if stream is not None else sys.stderr
        self.violations_found = False

    def report(self, name: str, violations: Iterable[Violation]) -> int:
        """Write one line per violation; returns how many were written."""
        count = 0
        for violation in violations:
            print(format_violation(name, violation), file=self.stream)
            count += 1
        if count:
            self.violations_found = True
        return count
