"""
APKBUILD Linter

Checks APKBUILD files against the Alpine Linux packaging conventions:
- Comment style and Maintainer/Contributor address comments
- Naming, usage and scoping of variables
- Placement of metadata variables and order of lifecycle functions
- Forbidden non-POSIX shell constructs (bashisms)

Every rule is an independent, read-only pass over an APKBUILD that returns
its violations in source order. APKBUILDLinter runs the passes in a fixed
order and concatenates their results.
"""

import logging
from dataclasses import dataclass
from email.errors import HeaderParseError, ObsoleteHeaderDefect
from email.headerregistry import Address, HeaderRegistry
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from apkbuild_lint.apkbuild import APKBUILD
from apkbuild_lint.metadata import (
    FUNCTION_ORDER,
    METADATA_VARIABLES,
    Placement,
    is_metadata,
    required_metadata,
)
from apkbuild_lint.parser import ASTNode, Comment, NodeType, walk
from apkbuild_lint.parser.lexer import NAME_CHARS
from apkbuild_lint.violations import Violation, ViolationKind

logger = logging.getLogger(__name__)


MAINTAINER_PREFIX = " Maintainer:"
CONTRIBUTOR_PREFIX = " Contributor:"

# Declaration builtins that are part of the allowed dialect
POSIX_DECLARATIONS = frozenset({"local", "export"})


# ============================================================================
# ADDRESS COMMENTS
# ============================================================================

_HEADERS = HeaderRegistry()


@dataclass
class AddressComment:
    """A Maintainer/Contributor comment with its parsed mailbox."""
    comment: Comment
    address: Address

    @property
    def mailbox(self) -> str:
        """Normalized mailbox string used to compare addresses."""
        return str(self.address)


def parse_address(text: str) -> Optional[Address]:
    """Parse a single RFC 5322 mailbox, returning None if it is invalid."""
    try:
        header = _HEADERS("To", text)
    except (HeaderParseError, IndexError, ValueError):
        return None
    # Obsolete syntax (such as a period in the display name) is still valid
    defects = [d for d in header.defects if not isinstance(d, ObsoleteHeaderDefect)]
    if defects or len(header.addresses) != 1:
        return None
    if len(header.groups) != 1 or header.groups[0].display_name is not None:
        return None
    address = header.addresses[0]
    if not address.username or not address.domain:
        return None
    return address


def address_comments(comments: Iterable[Comment],
                     prefix: str) -> Tuple[int, List[AddressComment], List[Violation]]:
    """
    Examine comments starting with ``prefix``.

    Returns the number of matching comments, the ones carrying a valid
    address, and violations for the malformed ones.
    """
    count = 0
    parsed: List[AddressComment] = []
    violations: List[Violation] = []

    for comment in comments:
        if not comment.text.startswith(prefix):
            continue
        count += 1

        rest = comment.text[len(prefix):]
        if not rest.strip(" "):
            violations.append(Violation.create(ViolationKind.MISSING_ADDRESS, comment.pos))
            continue
        if not rest.startswith(" "):
            violations.append(Violation.create(ViolationKind.NO_ADDRESS_SEPARATOR, comment.pos))
            continue

        address = parse_address(rest.strip(" "))
        if address is None:
            violations.append(Violation.create(ViolationKind.INVALID_ADDRESS, comment.pos))
            continue
        parsed.append(AddressComment(comment, address))

    return count, parsed, violations


# ============================================================================
# LINTER RULES
# ============================================================================

class LintRule:
    """Base class for lint rules."""

    # Name used to disable the rule from configuration
    name: str = "rule"

    def check(self, apkbuild: APKBUILD) -> List[Violation]:
        """Check an APKBUILD and return any violations found."""
        raise NotImplementedError


class CommentRule(LintRule):
    """Comments must start with a space (an empty comment is fine)."""

    name = "comments"

    def check(self, apkbuild: APKBUILD) -> List[Violation]:
        violations = []

        def visit(node: ASTNode) -> bool:
            if node.node_type is NodeType.COMMENT:
                if node.text and not node.text.startswith(" "):
                    violations.append(
                        Violation.create(ViolationKind.BAD_COMMENT_PREFIX, node.pos))
            return True

        walk(apkbuild.tree, visit)
        return violations


class MaintainerRule(LintRule):
    """
    Check the Maintainer and Contributor comments.

    Exactly one maintainer is required. It has to come before the first
    variable assignment and after all contributors, and no contributor may
    be listed twice.
    """

    name = "maintainer"

    def check(self, apkbuild: APKBUILD) -> List[Violation]:
        comments = apkbuild.comments
        violations = []

        maintainer_count, maintainers, found = address_comments(comments, MAINTAINER_PREFIX)
        violations.extend(found)
        _, contributors, found = address_comments(comments, CONTRIBUTOR_PREFIX)
        violations.extend(found)

        maintainer_comments = [c for c in comments if c.text.startswith(MAINTAINER_PREFIX)]
        if maintainer_count == 0:
            violations.append(Violation.create(ViolationKind.MISSING_MAINTAINER))
            maintainer = None
        else:
            maintainer = maintainer_comments[0]
            if maintainer_count > 1:
                violations.append(Violation.create(
                    ViolationKind.TOO_MANY_MAINTAINERS, maintainer_comments[-1].pos))

        if maintainer is not None:
            if apkbuild.assignments and apkbuild.assignments[0].pos < maintainer.pos:
                violations.append(
                    Violation.create(ViolationKind.MAINTAINER_AFTER_ASSIGN, maintainer.pos))
            for contributor in contributors:
                if contributor.comment.pos > maintainer.pos:
                    violations.append(Violation.create(
                        ViolationKind.WRONG_ADDR_COMMENT_ORDER, contributor.comment.pos))

        seen = set()
        for contributor in contributors:
            if contributor.mailbox in seen:
                violations.append(Violation.create(
                    ViolationKind.REPEATED_ADDR_COMMENT, contributor.comment.pos,
                    contributor.mailbox))
            seen.add(contributor.mailbox)

        return violations


class GlobalVariableRule(LintRule):
    """Custom global variables must start with exactly one underscore."""

    name = "global-variables"

    def check(self, apkbuild: APKBUILD) -> List[Violation]:
        violations = []
        for assign in apkbuild.assignments:
            name = assign.name
            if is_metadata(name):
                continue
            if len(name) > 1 and name.startswith("_") and not name.startswith("__"):
                continue
            violations.append(
                Violation.create(ViolationKind.INVALID_GLOBAL_VAR, assign.pos, name))
        return violations


def _skip_env_overrides(visit: Callable[[ASTNode], bool]) -> Callable[[ASTNode], bool]:
    """
    Wrap a visitor so that ``FOO=bar cmd`` assignments are not visited.

    Only the arguments of such a command invocation are searched further.
    """
    def wrapper(node: ASTNode) -> bool:
        if node.node_type is NodeType.CALL_EXPR and node.args:
            for arg in node.args:
                walk(arg, wrapper)
            return False
        return visit(node)
    return wrapper


class UnusedVariableRule(LintRule):
    """Variables that are assigned but never referenced."""

    name = "unused-variables"

    def check(self, apkbuild: APKBUILD) -> List[Violation]:
        violations = []

        def visit(node: ASTNode) -> bool:
            if node.node_type is NodeType.ASSIGN:
                name = node.name
                if not is_metadata(name) and apkbuild.is_unused_var(name):
                    violations.append(
                        Violation.create(ViolationKind.VARIABLE_UNUSED, node.pos, name))
            return True

        walk(apkbuild.tree, _skip_env_overrides(visit))
        return violations


class GlobalCmdSubstRule(LintRule):
    """Command substitutions may only run inside functions."""

    name = "global-cmd-substs"

    def check(self, apkbuild: APKBUILD) -> List[Violation]:
        violations = []

        def visit(node: ASTNode) -> bool:
            node_type = node.node_type
            if node_type is NodeType.FUNC_DECL:
                return False
            if node_type is NodeType.CMD_SUBST:
                violations.append(
                    Violation.create(ViolationKind.CMD_SUBST_IN_GLOBAL_VAR, node.pos))
                return False
            return True

        walk(apkbuild.tree, visit)
        return violations


class LocalVariableRule(LintRule):
    """Variables set inside a function must be declared local to it."""

    name = "local-variables"

    def check(self, apkbuild: APKBUILD) -> List[Violation]:
        violations = []
        for func in apkbuild.function_decls:
            violations.extend(self._check_function(apkbuild, func))
        return violations

    def _check_function(self, apkbuild: APKBUILD, func) -> List[Violation]:
        violations = []
        local_names = set()

        def check_name(name: str, node: ASTNode):
            if name in local_names or apkbuild.is_global_var(name) or is_metadata(name):
                return
            violations.append(
                Violation.create(ViolationKind.NON_LOCAL_VARIABLE, node.pos, name))

        def visit(node: ASTNode) -> bool:
            node_type = node.node_type
            if node_type is NodeType.DECL_CLAUSE and node.variant in POSIX_DECLARATIONS:
                local_names.update(a.name for a in node.assigns)
                return False
            if node_type is NodeType.ASSIGN:
                check_name(node.name, node)
            elif node_type is NodeType.WORD_ITER:
                check_name(node.name, node)
            elif node_type is NodeType.FUNC_DECL:
                # Nested functions are checked on their own
                return False
            return True

        walk(func.body, _skip_env_overrides(visit))
        return violations


class ParamExpansionRule(LintRule):
    """``${name}`` where ``$name`` would do."""

    name = "param-expansions"

    # Nodes holding a list of adjacent word parts
    PART_LISTS = (NodeType.WORD, NodeType.DBL_QUOTED, NodeType.ARITHM_EXP)

    def check(self, apkbuild: APKBUILD) -> List[Violation]:
        violations = []

        def visit(node: ASTNode) -> bool:
            if node.node_type in self.PART_LISTS:
                violations.extend(self._check_parts(node.parts))
            return True

        walk(apkbuild.tree, visit)
        return violations

    def _check_parts(self, parts: List[ASTNode]) -> List[Violation]:
        violations = []
        for i, part in enumerate(parts):
            if part.node_type is not NodeType.PARAM_EXP:
                continue
            if part.short or part.has_modifier():
                continue
            # ${10} and up cannot be written without braces
            if len(part.param) > 1 and part.param.isdigit():
                continue
            following = parts[i + 1] if i + 1 < len(parts) else None
            if (following is not None and following.node_type is NodeType.LIT
                    and following.value[:1] in NAME_CHARS):
                continue
            violations.append(Violation.create(
                ViolationKind.TRIVIAL_LONG_PARAM_EXP, part.pos, part.param, part.param))
        return violations


class MetadataPlacementRule(LintRule):
    """Metadata variables must be on the right side of the functions."""

    name = "metadata-placement"

    def check(self, apkbuild: APKBUILD) -> List[Violation]:
        first, last = apkbuild.first_function, apkbuild.last_function
        if first is None:
            return []

        violations = []
        for assign in apkbuild.assignments:
            var = METADATA_VARIABLES.get(assign.name)
            if var is None:
                continue
            if var.placement is Placement.BEFORE_FUNCTIONS and assign.pos > first.pos:
                violations.append(Violation.create(
                    ViolationKind.METADATA_BEFORE_FUNC, assign.pos, assign.name))
            elif var.placement is Placement.AFTER_FUNCTIONS and assign.pos <= last.pos:
                violations.append(Violation.create(
                    ViolationKind.METADATA_AFTER_FUNC, assign.pos, assign.name))
        return violations


class RequiredMetadataRule(LintRule):
    name = "required-metadata"

    def check(self, apkbuild: APKBUILD) -> List[Violation]:
        return [Violation.create(ViolationKind.MISSING_METADATA, None, name)
                for name in required_metadata()
                if not apkbuild.is_global_var(name)]


class FunctionOrderRule(LintRule):
    """Lifecycle functions must be declared in the order abuild runs them."""

    name = "function-order"

    def check(self, apkbuild: APKBUILD) -> List[Violation]:
        functions = apkbuild.functions
        violations = []
        for i, name in enumerate(FUNCTION_ORDER):
            earlier = functions.get(name)
            if earlier is None:
                continue
            for later_name in FUNCTION_ORDER[i + 1:]:
                later = functions.get(later_name)
                if later is not None and later.pos <= earlier.pos:
                    violations.append(Violation.create(
                        ViolationKind.WRONG_FUNC_ORDER, later.pos, later_name, name))
        violations.sort(key=lambda v: v.position)
        return violations


class DuplicateFunctionRule(LintRule):
    """A function declared twice silently replaces the first declaration."""

    name = "duplicate-functions"

    def check(self, apkbuild: APKBUILD) -> List[Violation]:
        violations = []
        seen = set()
        for func in apkbuild.function_decls:
            if func.name in seen:
                violations.append(Violation.create(
                    ViolationKind.DUPLICATE_FUNC_DECL, func.pos, func.name))
            seen.add(func.name)
        return violations


def _declaration_bashism(node) -> Optional[str]:
    return None if node.variant in POSIX_DECLARATIONS else node.variant


def _param_exp_bashism(node) -> Optional[str]:
    if (node.excl or node.length or node.width or
            node.index is not None or node.slice is not None):
        return "advanced parameter expression"
    return None


class BashismRule(LintRule):
    """Constructs outside of the POSIX shell grammar."""

    name = "bashisms"

    # Node type -> function naming the forbidden feature, or None if allowed
    FEATURES: Dict[NodeType, Callable[[ASTNode], Optional[str]]] = {
        NodeType.TEST_CLAUSE: lambda node: "test clause",
        NodeType.EXT_GLOB: lambda node: "extended globbing expression",
        NodeType.PROC_SUBST: lambda node: "process substitution",
        NodeType.LET_CLAUSE: lambda node: "let clause",
        NodeType.DECL_CLAUSE: _declaration_bashism,
        NodeType.PARAM_EXP: _param_exp_bashism,
        NodeType.FOR_CLAUSE: lambda node: "select clause" if node.select else None,
        NodeType.FUNC_DECL:
            lambda node: "non-POSIX function declaration" if node.rsrv_word else None,
    }

    def check(self, apkbuild: APKBUILD) -> List[Violation]:
        violations = []

        def visit(node: ASTNode) -> bool:
            feature_of = self.FEATURES.get(node.node_type)
            feature = feature_of(node) if feature_of else None
            if feature:
                violations.append(
                    Violation.create(ViolationKind.FORBIDDEN_BASHISM, node.pos, feature))
            return True

        walk(apkbuild.tree, visit)
        return violations


# Passes in the order they are run
DEFAULT_RULES = (
    CommentRule,
    MaintainerRule,
    GlobalVariableRule,
    UnusedVariableRule,
    GlobalCmdSubstRule,
    LocalVariableRule,
    ParamExpansionRule,
    MetadataPlacementRule,
    RequiredMetadataRule,
    FunctionOrderRule,
    DuplicateFunctionRule,
    BashismRule,
)

RULE_NAMES = tuple(rule.name for rule in DEFAULT_RULES)


# ============================================================================
# LINTER ENGINE
# ============================================================================

class APKBUILDLinter:
    """
    Main linter class that runs rules against APKBUILDs.
    """

    def __init__(self, rules: List[LintRule] = None, disabled: Iterable[str] = ()):
        disabled = set(disabled)
        self.rules = [rule for rule in (rules or [cls() for cls in DEFAULT_RULES])
                      if rule.name not in disabled]

    def lint(self, apkbuild: APKBUILD) -> List[Violation]:
        """Run every rule and return all violations, pass by pass."""
        violations = []
        for rule in self.rules:
            found = rule.check(apkbuild)
            logger.debug("%s: %s found %d violations", apkbuild.name, rule.name, len(found))
            violations.extend(found)
        return violations

    def lint_source(self, source: str, name: str = "APKBUILD") -> List[Violation]:
        return self.lint(APKBUILD.parse(source, name))

    def lint_file(self, path) -> List[Violation]:
        """Lint a file; raises OSError or ParseError if it cannot be read."""
        return self.lint(APKBUILD.from_file(path))
