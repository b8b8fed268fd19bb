"""
apkbuild_lint - APKBUILD Style Linter

Checks Alpine Linux package build scripts against the packaging style
conventions: comments, metadata variables, variable scoping, function
order and the POSIX shell dialect.
"""

__version__ = "0.1.0"
__author__ = "apkbuild-lint contributors"

from apkbuild_lint.apkbuild import APKBUILD
from apkbuild_lint.rules import APKBUILDLinter
from apkbuild_lint.violations import Violation, ViolationKind
