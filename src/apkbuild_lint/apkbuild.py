"""
APKBUILD Document Model

Wraps a parsed build script and classifies its top-level structure in a
single traversal: comments and assignments outside of functions (in source
order) and function declarations. Function bodies are never entered, so an
assignment made inside a function is never mistaken for a global.
"""

import logging
from typing import Dict, List, Optional, Set

from apkbuild_lint.parser import (
    ASTNode,
    Assign,
    Comment,
    File,
    FuncDecl,
    NodeType,
    parse_file,
    parse_source,
    walk,
)

logger = logging.getLogger(__name__)


class APKBUILD:
    """
    A parsed APKBUILD.

    Usage:
        apkbuild = APKBUILD.from_file("main/zlib/APKBUILD")
        apkbuild.is_global_var("pkgname")
    """

    def __init__(self, tree: File, name: str):
        self.tree = tree
        self.name = name
        self.comments: List[Comment] = []
        self.assignments: List[Assign] = []
        # Name-keyed view; a later declaration replaces an earlier one
        self.functions: Dict[str, FuncDecl] = {}
        # Every declaration, in source order
        self.function_decls: List[FuncDecl] = []

        walk(tree, self._classify)
        self._global_names: Set[str] = {a.name for a in self.assignments}

        logger.debug("%s: %d comments, %d global assignments, %d functions",
                     name, len(self.comments), len(self.assignments),
                     len(self.function_decls))

    @classmethod
    def parse(cls, source: str, name: str = "APKBUILD") -> "APKBUILD":
        """Build from source text; raises ParseError on invalid shell."""
        return cls(parse_source(source, name), name)

    @classmethod
    def from_file(cls, path) -> "APKBUILD":
        """Build from a file, using its path as the name."""
        name = str(path)
        return cls(parse_file(name), name)

    def _classify(self, node: ASTNode) -> bool:
        node_type = node.node_type
        if node_type is NodeType.DECL_CLAUSE:
            # Exported names belong to the environment, not the script
            return node.variant != "export"
        if node_type is NodeType.FUNC_DECL:
            self.functions[node.name] = node
            self.function_decls.append(node)
            return False
        if node_type is NodeType.ASSIGN:
            self.assignments.append(node)
        elif node_type is NodeType.COMMENT:
            self.comments.append(node)
        return True

    @property
    def first_function(self) -> Optional[FuncDecl]:
        return self.function_decls[0] if self.function_decls else None

    @property
    def last_function(self) -> Optional[FuncDecl]:
        return self.function_decls[-1] if self.function_decls else None

    def is_global_var(self, name: str) -> bool:
        """Check if ``name`` is assigned outside of any function."""
        return name in self._global_names

    def is_unused_var(self, name: str) -> bool:
        """
        Check that ``name`` is never referenced anywhere in the script.

        A variable counts as used when it is exported, expanded as a
        parameter, or referenced dynamically through a single-quoted
        literal ($'name' or '$name', as used with eval).
        """
        found = False

        def visit(node: ASTNode) -> bool:
            nonlocal found
            if found:
                return False
            node_type = node.node_type
            if node_type is NodeType.DECL_CLAUSE:
                if node.variant == "export":
                    found = any(a.name == name for a in node.assigns)
            elif node_type is NodeType.SGL_QUOTED:
                found = ((node.dollar and node.value == name) or
                         node.value == "$" + name)
            elif node_type is NodeType.PARAM_EXP:
                found = node.param == name
            return not found

        walk(self.tree, visit)
        return not found

    def __repr__(self):
        return f"APKBUILD({self.name!r})"
