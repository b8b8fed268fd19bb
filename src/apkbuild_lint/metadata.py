"""
APKBUILD Metadata Registries

Process-wide constant tables describing the variables and functions that
abuild gives a special meaning to.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Tuple


class Placement(Enum):
    """Where a metadata variable must be assigned relative to functions."""
    BEFORE_FUNCTIONS = "before"
    AFTER_FUNCTIONS = "after"


@dataclass(frozen=True)
class MetadataVariable:
    placement: Placement = Placement.BEFORE_FUNCTIONS
    required: bool = False


_BEFORE = MetadataVariable(Placement.BEFORE_FUNCTIONS)
_REQUIRED = MetadataVariable(Placement.BEFORE_FUNCTIONS, required=True)
_AFTER = MetadataVariable(Placement.AFTER_FUNCTIONS)


METADATA_VARIABLES: Mapping[str, MetadataVariable] = MappingProxyType({
    "pkgname": _REQUIRED,
    "pkgver": _REQUIRED,
    "pkgrel": _REQUIRED,
    "pkgdesc": _REQUIRED,
    "url": _REQUIRED,
    "arch": _REQUIRED,
    "license": _REQUIRED,
    "depends": _BEFORE,
    "depends_dev": _BEFORE,
    "makedepends": _BEFORE,
    "checkdepends": _BEFORE,
    "install": _BEFORE,
    "install_if": _BEFORE,
    "subpackages": _BEFORE,
    "source": _BEFORE,
    "options": _BEFORE,
    "patch_args": _BEFORE,
    "builddir": _BEFORE,
    "replaces": _BEFORE,
    "replaces_priority": _BEFORE,
    "provides": _BEFORE,
    "provider_priority": _BEFORE,
    "pkgusers": _BEFORE,
    "pkggroups": _BEFORE,
    "triggers": _BEFORE,
    # Checksums are generated by `abuild checksum` and appended to the file
    "md5sums": _AFTER,
    "sha256sums": _AFTER,
    "sha512sums": _AFTER,
})


# Lifecycle functions in the order abuild invokes them
FUNCTION_ORDER: Tuple[str, ...] = (
    "snapshot",
    "sanitycheck",
    "fetch",
    "unpack",
    "prepare",
    "build",
    "check",
    "package",
)


def is_metadata(name: str) -> bool:
    return name in METADATA_VARIABLES


def required_metadata() -> Tuple[str, ...]:
    """Names of required metadata variables, in registry order."""
    return tuple(name for name, var in METADATA_VARIABLES.items() if var.required)
