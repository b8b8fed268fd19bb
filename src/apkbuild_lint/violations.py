"""
Lint Violations

Kinds of style violations and the messages reported for them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from apkbuild_lint.parser.nodes import Position


class ViolationKind(Enum):
    """Kinds of APKBUILD style violations."""
    BAD_COMMENT_PREFIX = "BadCommentPrefix"
    MISSING_MAINTAINER = "MissingMaintainer"
    TOO_MANY_MAINTAINERS = "TooManyMaintainers"
    MAINTAINER_AFTER_ASSIGN = "MaintainerAfterAssign"
    MISSING_ADDRESS = "MissingAddress"
    NO_ADDRESS_SEPARATOR = "NoAddressSeparator"
    INVALID_ADDRESS = "InvalidAddress"
    WRONG_ADDR_COMMENT_ORDER = "WrongAddrCommentOrder"
    REPEATED_ADDR_COMMENT = "RepeatedAddrComment"
    INVALID_GLOBAL_VAR = "InvalidGlobalVar"
    VARIABLE_UNUSED = "VariableUnused"
    CMD_SUBST_IN_GLOBAL_VAR = "CmdSubstInGlobalVar"
    NON_LOCAL_VARIABLE = "NonLocalVariable"
    TRIVIAL_LONG_PARAM_EXP = "TrivialLongParamExp"
    METADATA_BEFORE_FUNC = "MetadataBeforeFunc"
    METADATA_AFTER_FUNC = "MetadataAfterFunc"
    MISSING_METADATA = "MissingMetadata"
    WRONG_FUNC_ORDER = "WrongFuncOrder"
    DUPLICATE_FUNC_DECL = "DuplicateFuncDecl"
    FORBIDDEN_BASHISM = "ForbiddenBashism"


# Message templates, formatted with positional arguments
MESSAGES = {
    ViolationKind.BAD_COMMENT_PREFIX: "Comment doesn't start with a space",
    ViolationKind.MISSING_MAINTAINER: "Maintainer is missing",
    ViolationKind.TOO_MANY_MAINTAINERS: "Only one maintainer can be specified",
    ViolationKind.MAINTAINER_AFTER_ASSIGN:
        "Maintainer comment must be placed before the first variable assignment",
    ViolationKind.MISSING_ADDRESS: "Comment is missing an RFC 5322 address",
    ViolationKind.NO_ADDRESS_SEPARATOR:
        "Mail address should be separated from prefix with a space",
    ViolationKind.INVALID_ADDRESS: "Mail address doesn't conform to RFC 5322",
    ViolationKind.WRONG_ADDR_COMMENT_ORDER:
        "Contributor comments must be placed before the maintainer comment",
    ViolationKind.REPEATED_ADDR_COMMENT: "Contributor {} is listed more than once",
    ViolationKind.INVALID_GLOBAL_VAR:
        "Custom global variables should start with an '_': {}",
    ViolationKind.VARIABLE_UNUSED: "Variable {} is set but never used",
    ViolationKind.CMD_SUBST_IN_GLOBAL_VAR:
        "Command substitution is not allowed in the global scope",
    ViolationKind.NON_LOCAL_VARIABLE:
        "Variable {} should be declared local inside the function",
    ViolationKind.TRIVIAL_LONG_PARAM_EXP:
        "Braces are not needed for ${{{}}}, use ${} instead",
    ViolationKind.METADATA_BEFORE_FUNC:
        "Metadata variable {} must be declared before the first function",
    ViolationKind.METADATA_AFTER_FUNC:
        "Metadata variable {} must be declared after the last function",
    ViolationKind.MISSING_METADATA: "Required metadata variable {} is missing",
    ViolationKind.WRONG_FUNC_ORDER: "Function {} must be declared after function {}",
    ViolationKind.DUPLICATE_FUNC_DECL: "Function {} is declared more than once",
    ViolationKind.FORBIDDEN_BASHISM: "Found forbidden bashism: {}",
}


@dataclass(frozen=True)
class Violation:
    """A single style violation; ``position`` is None for whole-file issues."""
    kind: ViolationKind
    position: Optional[Position]
    message: str

    @classmethod
    def create(cls, kind: ViolationKind, position: Optional[Position] = None,
               *args) -> "Violation":
        return cls(kind, position, MESSAGES[kind].format(*args))

    def __str__(self):
        if self.position is None:
            return self.message
        return f"{self.position}: {self.message}"
