"""
apkbuild_lint.parser - Shell Script Parser

Lexer and parser for POSIX shell (with bash extensions) as used by APKBUILDs.
Converts script text into a syntax tree of positioned nodes.
"""

from apkbuild_lint.parser.lexer import Lexer, LexerError
from apkbuild_lint.parser.nodes import (
    ASTNode,
    NodeType,
    Position,
    walk,
    # Words
    Word,
    Lit,
    SglQuoted,
    DblQuoted,
    ParamExp,
    Slice,
    Replace,
    Expansion,
    CmdSubst,
    ArithmExp,
    ProcSubst,
    ExtGlob,
    # Commands
    File,
    Comment,
    Stmt,
    Redirect,
    Assign,
    CallExpr,
    DeclClause,
    LetClause,
    FuncDecl,
    Block,
    Subshell,
    IfClause,
    WhileClause,
    ForClause,
    WordIter,
    CStyleLoop,
    CaseClause,
    CaseItem,
    BinaryCmd,
    TestClause,
    ArithmCmd,
)
from apkbuild_lint.parser.parser import (
    Parser,
    ParseError,
    parse_file,
    parse_source,
)

__all__ = [
    # Lexer
    "Lexer",
    "LexerError",
    # Parser
    "Parser",
    "ParseError",
    "parse_file",
    "parse_source",
    # Nodes
    "ASTNode",
    "NodeType",
    "Position",
    "walk",
    "Word",
    "Lit",
    "SglQuoted",
    "DblQuoted",
    "ParamExp",
    "Slice",
    "Replace",
    "Expansion",
    "CmdSubst",
    "ArithmExp",
    "ProcSubst",
    "ExtGlob",
    "File",
    "Comment",
    "Stmt",
    "Redirect",
    "Assign",
    "CallExpr",
    "DeclClause",
    "LetClause",
    "FuncDecl",
    "Block",
    "Subshell",
    "IfClause",
    "WhileClause",
    "ForClause",
    "WordIter",
    "CStyleLoop",
    "CaseClause",
    "CaseItem",
    "BinaryCmd",
    "TestClause",
    "ArithmCmd",
]
