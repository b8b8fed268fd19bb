"""
Shell Syntax Tree

Node types produced by the shell parser. Every node records the 1-based
line and column where it starts. The set of node kinds is closed: each
dataclass sets its ``node_type`` from ``NodeType`` and lists its sub-nodes
in source order through ``children()``, which is what ``walk()`` uses.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Iterator, List, Optional, Union


class NodeType(Enum):
    """Types of syntax tree nodes."""
    FILE = auto()           # whole script
    COMMENT = auto()        # # text
    STMT = auto()           # command with redirections, ! and &
    CALL_EXPR = auto()      # FOO=bar cmd arg...
    ASSIGN = auto()         # name=value
    DECL_CLAUSE = auto()    # local/export/declare/readonly/typeset/nameref
    LET_CLAUSE = auto()     # let expr...
    FUNC_DECL = auto()      # name() body / function name body
    BLOCK = auto()          # { list; }
    SUBSHELL = auto()       # ( list )
    IF_CLAUSE = auto()      # if/elif/else/fi
    WHILE_CLAUSE = auto()   # while/until ... do ... done
    FOR_CLAUSE = auto()     # for/select ... do ... done
    WORD_ITER = auto()      # name [in words]
    CSTYLE_LOOP = auto()    # ((init; cond; post))
    CASE_CLAUSE = auto()    # case word in ... esac
    CASE_ITEM = auto()      # pattern) list ;;
    BINARY_CMD = auto()     # &&, ||, |, |&
    TEST_CLAUSE = auto()    # [[ ... ]]
    ARITHM_CMD = auto()     # (( ... ))
    REDIRECT = auto()       # >file, <<EOF
    WORD = auto()           # sequence of word parts
    LIT = auto()            # unquoted literal text
    SGL_QUOTED = auto()     # '...' / $'...'
    DBL_QUOTED = auto()     # "..." / $"..."
    PARAM_EXP = auto()      # $name / ${...}
    SLICE = auto()          # ${name:offset:length}
    REPLACE = auto()        # ${name/orig/with}
    EXPANSION = auto()      # ${name:-word}, ${name%word}, ...
    CMD_SUBST = auto()      # $(...) / `...`
    ARITHM_EXP = auto()     # $(( ... ))
    PROC_SUBST = auto()     # <(...) / >(...)
    EXT_GLOB = auto()       # *(...), +(...), ?(...), @(...), !(...)


@dataclass(frozen=True, order=True)
class Position:
    """A 1-based line/column location in a script."""
    line: int
    column: int

    def __str__(self):
        return f"{self.line}:{self.column}"


@dataclass
class ASTNode:
    """Base class for syntax tree nodes."""
    node_type: NodeType = None  # Set by subclasses in __post_init__
    line: int = 0
    column: int = 0

    @property
    def pos(self) -> Position:
        return Position(self.line, self.column)

    def children(self) -> Iterator["ASTNode"]:
        return iter(())


def _nodes(*items) -> Iterator[ASTNode]:
    """Yield nodes from a mix of nodes, node lists and Nones."""
    for item in items:
        if item is None:
            continue
        if isinstance(item, list):
            for sub in item:
                if sub is not None:
                    yield sub
        else:
            yield item


# =============================================================================
# WORDS
# =============================================================================

@dataclass
class Lit(ASTNode):
    """Unquoted literal text."""
    value: str = ""

    def __post_init__(self):
        self.node_type = NodeType.LIT

    def __repr__(self):
        return f"Lit({self.value!r})"


@dataclass
class SglQuoted(ASTNode):
    """Single-quoted string; ``dollar`` marks the $'...' form."""
    value: str = ""
    dollar: bool = False

    def __post_init__(self):
        self.node_type = NodeType.SGL_QUOTED


@dataclass
class Word(ASTNode):
    """A shell word made of adjacent parts, e.g. ``"$pkgdir"/usr``."""
    parts: List[ASTNode] = field(default_factory=list)

    def __post_init__(self):
        self.node_type = NodeType.WORD

    def lit(self) -> Optional[str]:
        """Return the word's text if it consists of unquoted literals only."""
        if not self.parts or not all(isinstance(p, Lit) for p in self.parts):
            return None
        return "".join(p.value for p in self.parts)

    def children(self):
        return _nodes(self.parts)


@dataclass
class DblQuoted(ASTNode):
    """Double-quoted string; ``dollar`` marks the $"..." form."""
    parts: List[ASTNode] = field(default_factory=list)
    dollar: bool = False

    def __post_init__(self):
        self.node_type = NodeType.DBL_QUOTED

    def children(self):
        return _nodes(self.parts)


@dataclass
class Slice(ASTNode):
    offset: Optional[Word] = None
    length: Optional[Word] = None

    def __post_init__(self):
        self.node_type = NodeType.SLICE

    def children(self):
        return _nodes(self.offset, self.length)


@dataclass
class Replace(ASTNode):
    all: bool = False
    orig: Optional[Word] = None
    with_: Optional[Word] = None

    def __post_init__(self):
        self.node_type = NodeType.REPLACE

    def children(self):
        return _nodes(self.orig, self.with_)


@dataclass
class Expansion(ASTNode):
    op: str = ""
    word: Optional[Word] = None

    def __post_init__(self):
        self.node_type = NodeType.EXPANSION

    def children(self):
        return _nodes(self.word)


@dataclass
class ParamExp(ASTNode):
    """
    A parameter expansion.

    ``short`` is true for ``$name``; the other flags describe ``${...}``
    modifiers: ``excl`` (${!name}), ``length`` (${#name}), ``width``
    (${%name}).
    """
    param: str = ""
    short: bool = False
    excl: bool = False
    length: bool = False
    width: bool = False
    index: Optional[Word] = None
    slice: Optional[Slice] = None
    repl: Optional[Replace] = None
    exp: Optional[Expansion] = None

    def __post_init__(self):
        self.node_type = NodeType.PARAM_EXP

    def __repr__(self):
        if self.short:
            return f"ParamExp(${self.param})"
        return f"ParamExp(${{{self.param}}})"

    def has_modifier(self) -> bool:
        """Check if the expansion needs its braces for a modifier."""
        return (self.excl or self.length or self.width or
                self.index is not None or self.slice is not None or
                self.repl is not None or self.exp is not None)

    def children(self):
        return _nodes(self.index, self.slice, self.repl, self.exp)


@dataclass
class CmdSubst(ASTNode):
    """Command substitution: $(...) or `...`."""
    stmts: List[ASTNode] = field(default_factory=list)
    backquotes: bool = False

    def __post_init__(self):
        self.node_type = NodeType.CMD_SUBST

    def children(self):
        return _nodes(self.stmts)


@dataclass
class ArithmExp(ASTNode):
    """Arithmetic expansion: $(( ... )) or $[ ... ]."""
    parts: List[ASTNode] = field(default_factory=list)
    bracket: bool = False

    def __post_init__(self):
        self.node_type = NodeType.ARITHM_EXP

    def children(self):
        return _nodes(self.parts)


@dataclass
class ProcSubst(ASTNode):
    """Process substitution: <(...) or >(...)."""
    op: str = "<("
    stmts: List[ASTNode] = field(default_factory=list)

    def __post_init__(self):
        self.node_type = NodeType.PROC_SUBST

    def children(self):
        return _nodes(self.stmts)


@dataclass
class ExtGlob(ASTNode):
    """Extended globbing expression such as ``*(foo|bar)``."""
    op: str = "*("
    pattern: str = ""

    def __post_init__(self):
        self.node_type = NodeType.EXT_GLOB


# =============================================================================
# COMMANDS
# =============================================================================

@dataclass
class Comment(ASTNode):
    """A comment; ``text`` excludes the leading '#'."""
    text: str = ""

    def __post_init__(self):
        self.node_type = NodeType.COMMENT

    def __repr__(self):
        return f"Comment({self.text!r})"


@dataclass
class Redirect(ASTNode):
    op: str = ">"
    fd: Optional[str] = None
    word: Optional[Word] = None
    heredoc: Optional[Word] = None

    def __post_init__(self):
        self.node_type = NodeType.REDIRECT

    def children(self):
        return _nodes(self.word, self.heredoc)


@dataclass
class Stmt(ASTNode):
    """A command together with its redirections and modifiers."""
    cmd: Optional[ASTNode] = None
    redirs: List[Redirect] = field(default_factory=list)
    negated: bool = False
    background: bool = False

    def __post_init__(self):
        self.node_type = NodeType.STMT

    def children(self):
        return _nodes(self.cmd, self.redirs)


@dataclass
class Assign(ASTNode):
    """
    A variable assignment.

    ``naked`` marks a bare name inside a declaration clause (``local foo``),
    ``array`` holds the elements of ``name=(...)``.
    """
    name: str = ""
    value: Optional[Word] = None
    append: bool = False
    naked: bool = False
    index: Optional[Word] = None
    array: Optional[List[Word]] = None

    def __post_init__(self):
        self.node_type = NodeType.ASSIGN

    def __repr__(self):
        return f"Assign({self.name})"

    def children(self):
        return _nodes(self.index, self.value, self.array)


@dataclass
class CallExpr(ASTNode):
    """A simple command: leading assignments followed by arguments."""
    assigns: List[Assign] = field(default_factory=list)
    args: List[Word] = field(default_factory=list)

    def __post_init__(self):
        self.node_type = NodeType.CALL_EXPR

    def children(self):
        return _nodes(self.assigns, self.args)


@dataclass
class DeclClause(ASTNode):
    """A declaration builtin; ``variant`` is its keyword."""
    variant: str = ""
    opts: List[Word] = field(default_factory=list)
    assigns: List[Assign] = field(default_factory=list)

    def __post_init__(self):
        self.node_type = NodeType.DECL_CLAUSE

    def children(self):
        return _nodes(self.opts, self.assigns)


@dataclass
class LetClause(ASTNode):
    exprs: List[Word] = field(default_factory=list)

    def __post_init__(self):
        self.node_type = NodeType.LET_CLAUSE

    def children(self):
        return _nodes(self.exprs)


@dataclass
class FuncDecl(ASTNode):
    """A function declaration; ``rsrv_word`` marks the ``function`` form."""
    name: str = ""
    body: Optional[Stmt] = None
    rsrv_word: bool = False

    def __post_init__(self):
        self.node_type = NodeType.FUNC_DECL

    def __repr__(self):
        return f"FuncDecl({self.name})"

    def children(self):
        return _nodes(self.body)


@dataclass
class Block(ASTNode):
    stmts: List[ASTNode] = field(default_factory=list)

    def __post_init__(self):
        self.node_type = NodeType.BLOCK

    def children(self):
        return _nodes(self.stmts)


@dataclass
class Subshell(ASTNode):
    stmts: List[ASTNode] = field(default_factory=list)

    def __post_init__(self):
        self.node_type = NodeType.SUBSHELL

    def children(self):
        return _nodes(self.stmts)


@dataclass
class IfClause(ASTNode):
    """if/elif chain; an ``elif`` is a nested IfClause in ``else_``."""
    cond: List[ASTNode] = field(default_factory=list)
    then: List[ASTNode] = field(default_factory=list)
    else_: List[ASTNode] = field(default_factory=list)

    def __post_init__(self):
        self.node_type = NodeType.IF_CLAUSE

    def children(self):
        return _nodes(self.cond, self.then, self.else_)


@dataclass
class WhileClause(ASTNode):
    cond: List[ASTNode] = field(default_factory=list)
    body: List[ASTNode] = field(default_factory=list)
    until: bool = False

    def __post_init__(self):
        self.node_type = NodeType.WHILE_CLAUSE

    def children(self):
        return _nodes(self.cond, self.body)


@dataclass
class WordIter(ASTNode):
    """The ``name in words`` part of a for loop, positioned at the name."""
    name: str = ""
    items: List[Word] = field(default_factory=list)
    in_list: bool = False

    def __post_init__(self):
        self.node_type = NodeType.WORD_ITER

    def children(self):
        return _nodes(self.items)


@dataclass
class CStyleLoop(ASTNode):
    expr: Optional[Word] = None

    def __post_init__(self):
        self.node_type = NodeType.CSTYLE_LOOP

    def children(self):
        return _nodes(self.expr)


@dataclass
class ForClause(ASTNode):
    """for/select loop; ``select`` marks the bash select form."""
    loop: Union[WordIter, CStyleLoop, None] = None
    body: List[ASTNode] = field(default_factory=list)
    select: bool = False

    def __post_init__(self):
        self.node_type = NodeType.FOR_CLAUSE

    def children(self):
        return _nodes(self.loop, self.body)


@dataclass
class CaseItem(ASTNode):
    patterns: List[Word] = field(default_factory=list)
    stmts: List[ASTNode] = field(default_factory=list)
    op: str = ";;"

    def __post_init__(self):
        self.node_type = NodeType.CASE_ITEM

    def children(self):
        return _nodes(self.patterns, self.stmts)


@dataclass
class CaseClause(ASTNode):
    word: Optional[Word] = None
    items: List[CaseItem] = field(default_factory=list)

    def __post_init__(self):
        self.node_type = NodeType.CASE_CLAUSE

    def children(self):
        return _nodes(self.word, self.items)


@dataclass
class BinaryCmd(ASTNode):
    """Two statements joined by &&, ||, | or |&."""
    op: str = "&&"
    x: Optional[Stmt] = None
    y: Optional[Stmt] = None

    def __post_init__(self):
        self.node_type = NodeType.BINARY_CMD

    def children(self):
        return _nodes(self.x, self.y)


@dataclass
class TestClause(ASTNode):
    """A bash ``[[ ... ]]`` test; operands and operators are kept as words."""
    words: List[Word] = field(default_factory=list)

    def __post_init__(self):
        self.node_type = NodeType.TEST_CLAUSE

    def children(self):
        return _nodes(self.words)


@dataclass
class ArithmCmd(ASTNode):
    expr: Optional[Word] = None

    def __post_init__(self):
        self.node_type = NodeType.ARITHM_CMD

    def children(self):
        return _nodes(self.expr)


@dataclass
class File(ASTNode):
    """Root of the syntax tree."""
    stmts: List[ASTNode] = field(default_factory=list)
    name: str = "<unknown>"

    def __post_init__(self):
        self.node_type = NodeType.FILE

    def __repr__(self):
        return f"File({self.name}, {len(self.stmts)} statements)"

    def children(self):
        return _nodes(self.stmts)


def walk(node: Optional[ASTNode], visit: Callable[[ASTNode], bool]) -> None:
    """
    Traverse a syntax tree in depth-first pre-order.

    ``visit`` is called for every node; when it returns False the node's
    children are skipped. Iterative, so tree depth (a long ``&&`` chain
    nests one level per link) is not bounded by the recursion limit.
    """
    stack = [node]
    while stack:
        current = stack.pop()
        if current is None or not visit(current):
            continue
        stack.extend(reversed(list(current.children())))
