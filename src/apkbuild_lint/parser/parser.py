"""
Shell Script Parser

Recursive-descent parser turning shell source into the syntax tree defined
in ``nodes``. The grammar is a permissive superset of POSIX sh: bash-only
constructs such as ``[[ ]]``, ``let``, ``select``, extended globs, process
substitution and ``function name`` declarations are parsed into regular
nodes so that callers can inspect and report them. Comments are kept as
nodes in the statement list where they appear.
"""

import logging
import re
from typing import FrozenSet, Iterable, List, Optional, Tuple

from apkbuild_lint.parser.lexer import (
    Lexer,
    LexerError,
    NAME_CHARS,
    NAME_START,
    WORD_DELIMITERS,
)
from apkbuild_lint.parser.nodes import (
    ArithmCmd,
    ArithmExp,
    Assign,
    ASTNode,
    BinaryCmd,
    Block,
    CallExpr,
    CaseClause,
    CaseItem,
    CmdSubst,
    Comment,
    CStyleLoop,
    DblQuoted,
    DeclClause,
    Expansion,
    ExtGlob,
    File,
    ForClause,
    FuncDecl,
    IfClause,
    LetClause,
    Lit,
    ParamExp,
    ProcSubst,
    Redirect,
    Replace,
    SglQuoted,
    Slice,
    Stmt,
    Subshell,
    TestClause,
    WhileClause,
    Word,
    WordIter,
)

logger = logging.getLogger(__name__)


# Reserved words which end a statement list when found in command position
LIST_TERMINATORS = ("then", "fi", "do", "done", "elif", "else", "esac", "}")

# Reserved words starting a compound command
COMPOUND_WORDS = ("if", "while", "until", "for", "select", "case",
                  "function", "[[", "{")

# Builtins parsed as declaration clauses
DECL_VARIANTS = frozenset({"declare", "local", "export", "readonly",
                           "typeset", "nameref"})

ASSIGN_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)(\[[^\]\n]*\])?(\+?=)")
REDIRECT_RE = re.compile(r"(\d*)(<<-|<<<|<<|<>|<&|>>|>&|>\||<|>)|(&>>|&>)")
NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
TEST_OPERATOR_RE = re.compile(r"&&|\|\||[()<>]")

# Inside [[ ]] only blanks and newlines separate words
TEST_DELIMITERS = frozenset(" \t\r\n")

SPECIAL_PARAMS = "@*#?-$!"
DIGITS = "0123456789"


class ParseError(Exception):
    """Error during parsing."""
    def __init__(self, message: str, line: int = 0, column: int = 0,
                 filename: str = "<unknown>"):
        self.message = message
        self.line = line
        self.column = column
        self.filename = filename
        super().__init__(
            f"Parse error in {filename} at line {line}, column {column}: {message}")


class Parser:
    """
    Parser for shell scripts.

    Usage:
        parser = Parser(source_text, "APKBUILD")
        tree = parser.parse()
    """

    def __init__(self, source: str, filename: str = "<unknown>",
                 line: int = 1, column: int = 1):
        self.lexer = Lexer(source, filename, line, column)
        self.filename = filename
        # Here-document redirections waiting for the end of the current line
        self._heredocs: List[Redirect] = []
        # Comments read between the tokens of a statement
        self._comments: List[Comment] = []

    def parse(self) -> File:
        """Parse the whole source into a File node."""
        stmts = self._stmt_list()
        if not self.lexer.at_eof():
            raise self._error(f"unexpected {self.lexer.current()!r}")
        return File(stmts=stmts, name=self.filename, line=1, column=1)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _error(self, message: str) -> ParseError:
        return ParseError(message, self.lexer.line, self.lexer.column, self.filename)

    def _reserved_at(self, words: Iterable[str]) -> Optional[str]:
        """Return the reserved word at the cursor, if it stands on its own."""
        lx = self.lexer
        for word in words:
            if lx.startswith(word) and lx.at_word_end(len(word)):
                return word
        return None

    def _expect_reserved(self, word: str) -> None:
        self.lexer.skip_blanks()
        if self._reserved_at((word,)) is None:
            raise self._error(f'expected "{word}"')
        self.lexer.advance(len(word))

    def _comment(self) -> Comment:
        lx = self.lexer
        line, column = lx.line, lx.column
        return Comment(text=lx.read_comment(), line=line, column=column)

    def _flush_comments(self, items: List[ASTNode]) -> None:
        if self._comments:
            items.extend(self._comments)
            self._comments = []

    def _newline(self) -> None:
        """Consume a newline; pending here-document bodies start after it."""
        self.lexer.advance()
        if self._heredocs:
            self._read_heredocs()

    def _linebreaks(self) -> None:
        """Skip blanks, newlines and comments between tokens."""
        lx = self.lexer
        while True:
            lx.skip_blanks()
            ch = lx.current()
            if ch == '\n':
                self._newline()
            elif ch == '#':
                self._comments.append(self._comment())
            else:
                break

    # -------------------------------------------------------------------------
    # Statement lists
    # -------------------------------------------------------------------------

    def _stmt_list(self, stops: FrozenSet[str] = frozenset()) -> List[ASTNode]:
        """Parse statements and comments until EOF or one of ``stops``."""
        lx = self.lexer
        items: List[ASTNode] = []

        while True:
            lx.skip_blanks()
            self._flush_comments(items)
            ch = lx.current()
            if ch is None:
                break
            if ch == '\n':
                self._newline()
                continue
            if ch == '#':
                items.append(self._comment())
                continue
            if ch == ';' and lx.peek() in (';', '&'):
                break  # case item terminator, handled by the caller
            if ch == ')':
                if ')' in stops:
                    break
                raise self._error("unexpected ')'")
            reserved = self._reserved_at(LIST_TERMINATORS)
            if reserved is not None:
                if reserved in stops:
                    break
                raise self._error(f'unexpected "{reserved}"')

            stmt = self._and_or()
            items.append(stmt)
            self._flush_comments(items)

            lx.skip_blanks()
            ch = lx.current()
            if ch == ';' and lx.peek() not in (';', '&'):
                lx.advance()
            elif ch == '&':
                lx.advance()
                stmt.background = True
            elif ch in (None, '\n', '#', ')', ';'):
                pass
            elif self._reserved_at(LIST_TERMINATORS) is None:
                raise self._error(f"unexpected {ch!r}")

        self._flush_comments(items)
        return items

    def _and_or(self) -> Stmt:
        lx = self.lexer
        stmt = self._pipeline()
        while True:
            lx.skip_blanks()
            if lx.startswith('&&') or lx.startswith('||'):
                op = lx.source[lx.pos:lx.pos + 2]
                lx.advance(2)
                self._linebreaks()
                right = self._pipeline()
                binary = BinaryCmd(op=op, x=stmt, y=right,
                                   line=stmt.line, column=stmt.column)
                stmt = Stmt(cmd=binary, line=stmt.line, column=stmt.column)
            else:
                return stmt

    def _pipeline(self) -> Stmt:
        lx = self.lexer
        lx.skip_blanks()
        line, column = lx.line, lx.column
        negated = False
        if lx.current() == '!' and lx.peek() in (' ', '\t', '\n'):
            lx.advance()
            negated = True

        stmt = self._command()
        while True:
            lx.skip_blanks()
            if lx.current() == '|' and lx.peek() != '|':
                op = '|&' if lx.peek() == '&' else '|'
                lx.advance(len(op))
                self._linebreaks()
                right = self._command()
                binary = BinaryCmd(op=op, x=stmt, y=right,
                                   line=stmt.line, column=stmt.column)
                stmt = Stmt(cmd=binary, line=stmt.line, column=stmt.column)
            else:
                break

        if negated:
            stmt.negated = True
            stmt.line, stmt.column = line, column
        return stmt

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def _command(self) -> Stmt:
        lx = self.lexer
        lx.skip_blanks()
        stmt = Stmt(line=lx.line, column=lx.column)

        reserved = self._reserved_at(COMPOUND_WORDS)
        if lx.startswith('(('):
            cmd = self._arithm_cmd()
        elif lx.current() == '(':
            cmd = self._subshell()
        elif reserved == '{':
            cmd = self._block()
        elif reserved == 'if':
            cmd = self._if_clause('if')
        elif reserved in ('while', 'until'):
            cmd = self._while_clause(reserved)
        elif reserved in ('for', 'select'):
            cmd = self._for_clause(reserved)
        elif reserved == 'case':
            cmd = self._case_clause()
        elif reserved == 'function':
            cmd = self._function_keyword()
        elif reserved == '[[':
            cmd = self._test_clause()
        else:
            self._simple_command(stmt)
            return stmt

        stmt.cmd = cmd
        self._trailing_redirects(stmt)
        return stmt

    def _at_redirect(self) -> bool:
        lx = self.lexer
        if lx.current() in ('<', '>') and lx.peek() == '(':
            return False  # process substitution
        return lx.match(REDIRECT_RE) is not None

    def _trailing_redirects(self, stmt: Stmt) -> None:
        while True:
            self.lexer.skip_blanks()
            if not self._at_redirect():
                return
            self._redirect(stmt)

    def _simple_command(self, stmt: Stmt) -> None:
        lx = self.lexer
        call = CallExpr(line=stmt.line, column=stmt.column)

        while True:
            lx.skip_blanks()
            if self._at_redirect():
                self._redirect(stmt)
                continue
            ch = lx.current()
            if ch is None or ch in '\n;&|)#':
                break
            if ch == '(':
                name = call.args[0].lit() if len(call.args) == 1 else None
                if call.assigns or name is None:
                    raise self._error("unexpected '('")
                stmt.cmd = self._func_decl(call.args[0])
                return
            if not call.args and lx.match(ASSIGN_RE):
                call.assigns.append(self._assign())
                continue

            word = self._word()
            if not call.args and not call.assigns:
                keyword = word.lit()
                if keyword in DECL_VARIANTS:
                    stmt.cmd = self._decl_clause(stmt, keyword, word)
                    return
                if keyword == 'let':
                    stmt.cmd = self._let_clause(stmt, word)
                    return
            call.args.append(word)

        if call.args or call.assigns:
            stmt.cmd = call
        elif not stmt.redirs:
            raise self._error("expected a command")

    def _decl_clause(self, stmt: Stmt, variant: str, keyword: Word) -> DeclClause:
        lx = self.lexer
        decl = DeclClause(variant=variant, line=keyword.line, column=keyword.column)
        while True:
            lx.skip_blanks()
            if self._at_redirect():
                self._redirect(stmt)
                continue
            ch = lx.current()
            if ch is None or ch in '\n;&|)#':
                break
            if lx.match(ASSIGN_RE):
                decl.assigns.append(self._assign())
                continue
            word = self._word()
            name = word.lit()
            if name is not None and NAME_RE.fullmatch(name):
                decl.assigns.append(Assign(name=name, naked=True,
                                           line=word.line, column=word.column))
            else:
                decl.opts.append(word)
        return decl

    def _let_clause(self, stmt: Stmt, keyword: Word) -> LetClause:
        lx = self.lexer
        clause = LetClause(line=keyword.line, column=keyword.column)
        while True:
            lx.skip_blanks()
            if self._at_redirect():
                self._redirect(stmt)
                continue
            ch = lx.current()
            if ch is None or ch in '\n;&|)#':
                break
            clause.exprs.append(self._word())
        return clause

    def _assign(self) -> Assign:
        lx = self.lexer
        line, column = lx.line, lx.column
        m = lx.match(ASSIGN_RE)
        name, index_text, op = m.group(1), m.group(2), m.group(3)
        lx.advance(len(name))

        index = None
        if index_text:
            index = self._inline_word(index_text[1:-1], lx.line, lx.column + 1)
            lx.advance(len(index_text))
        lx.advance(len(op))

        assign = Assign(name=name, append=(op == '+='), index=index,
                        line=line, column=column)
        if lx.current() == '(':
            lx.advance()
            assign.array = []
            while True:
                self._linebreaks()
                ch = lx.current()
                if ch is None:
                    raise self._error("reached EOF without matching '(' with ')'")
                if ch == ')':
                    lx.advance()
                    break
                assign.array.append(self._word())
        elif not lx.at_word_end():
            assign.value = self._word()
        return assign

    def _redirect(self, stmt: Stmt) -> None:
        lx = self.lexer
        line, column = lx.line, lx.column
        m = lx.match(REDIRECT_RE)
        if m.group(3):
            fd, op = None, m.group(3)
        else:
            fd, op = (m.group(1) or None), m.group(2)
        lx.advance(m.end() - m.start())

        lx.skip_blanks()
        ch = lx.current()
        if ch is None or ch in '\n;&|)':
            raise self._error(f"{op} must be followed by a word")
        redirect = Redirect(op=op, fd=fd, word=self._word(), line=line, column=column)
        if op in ('<<', '<<-'):
            self._heredocs.append(redirect)
        stmt.redirs.append(redirect)

    def _read_heredocs(self) -> None:
        lx = self.lexer
        pending, self._heredocs = self._heredocs, []
        for redirect in pending:
            delimiter, quoted = _heredoc_delimiter(redirect.word)
            line, column = lx.line, lx.column
            start = end = lx.pos
            while True:
                line_start = lx.pos
                text = lx.read_line()
                if text is None:
                    end = lx.pos
                    break
                if redirect.op == '<<-':
                    text = text.lstrip('\t')
                if text.rstrip('\r') == delimiter:
                    end = line_start
                    break
            body = lx.source[start:end]
            if quoted:
                redirect.heredoc = Word(parts=[Lit(value=body, line=line, column=column)],
                                        line=line, column=column)
            else:
                redirect.heredoc = self._inline_word(body, line, column)

    def _inline_word(self, text: str, line: int, column: int) -> Word:
        """Parse text where only expansions are special (here-documents, indexes)."""
        sub = Parser(text, self.filename, line, column)
        parts = sub._quoted_parts(stop=None)
        return Word(parts=parts, line=line, column=column)

    # -------------------------------------------------------------------------
    # Compound commands
    # -------------------------------------------------------------------------

    def _block(self) -> Block:
        lx = self.lexer
        block = Block(line=lx.line, column=lx.column)
        lx.advance()
        block.stmts = self._stmt_list(frozenset({'}'}))
        self._expect_reserved('}')
        return block

    def _subshell(self) -> Subshell:
        lx = self.lexer
        subshell = Subshell(line=lx.line, column=lx.column)
        lx.advance()
        subshell.stmts = self._stmt_list(frozenset({')'}))
        if lx.current() != ')':
            raise self._error("reached EOF without matching '(' with ')'")
        lx.advance()
        return subshell

    def _if_clause(self, keyword: str) -> IfClause:
        lx = self.lexer
        clause = IfClause(line=lx.line, column=lx.column)
        lx.advance(len(keyword))
        clause.cond = self._stmt_list(frozenset({'then'}))
        self._expect_reserved('then')
        clause.then = self._stmt_list(frozenset({'elif', 'else', 'fi'}))

        lx.skip_blanks()
        reserved = self._reserved_at(('elif', 'else', 'fi'))
        if reserved == 'elif':
            line, column = lx.line, lx.column
            nested = self._if_clause('elif')
            clause.else_ = [Stmt(cmd=nested, line=line, column=column)]
        elif reserved == 'else':
            lx.advance(len(reserved))
            clause.else_ = self._stmt_list(frozenset({'fi'}))
            self._expect_reserved('fi')
        elif reserved == 'fi':
            lx.advance(len(reserved))
        else:
            raise self._error('if statement must end with a "fi"')
        return clause

    def _while_clause(self, keyword: str) -> WhileClause:
        lx = self.lexer
        clause = WhileClause(until=(keyword == 'until'), line=lx.line, column=lx.column)
        lx.advance(len(keyword))
        clause.cond = self._stmt_list(frozenset({'do'}))
        clause.body = self._do_group()
        return clause

    def _do_group(self) -> List[ASTNode]:
        self._linebreaks()
        self._expect_reserved('do')
        body = self._stmt_list(frozenset({'done'}))
        self._expect_reserved('done')
        return body

    def _for_clause(self, keyword: str) -> ForClause:
        lx = self.lexer
        clause = ForClause(select=(keyword == 'select'), line=lx.line, column=lx.column)
        lx.advance(len(keyword))
        lx.skip_blanks()

        if keyword == 'for' and lx.startswith('(('):
            loop = CStyleLoop(line=lx.line, column=lx.column)
            lx.advance(2)
            parts = self._arithm_parts('))')
            lx.advance(2)
            loop.expr = Word(parts=parts, line=loop.line, column=loop.column + 2)
            lx.skip_blanks()
            if lx.current() == ';':
                lx.advance()
            clause.loop = loop
        else:
            line, column = lx.line, lx.column
            name = lx.read_name()
            if not name or not lx.at_word_end():
                raise self._error(f"{keyword} must be followed by a name")
            it = WordIter(name=name, line=line, column=column)
            self._linebreaks()
            if self._reserved_at(('in',)):
                lx.advance(2)
                it.in_list = True
                while True:
                    lx.skip_blanks()
                    ch = lx.current()
                    if ch is None or ch in '\n;#':
                        break
                    it.items.append(self._word())
            lx.skip_blanks()
            if lx.current() == ';':
                lx.advance()
            clause.loop = it

        clause.body = self._do_group()
        return clause

    def _case_clause(self) -> CaseClause:
        lx = self.lexer
        clause = CaseClause(line=lx.line, column=lx.column)
        lx.advance(4)
        lx.skip_blanks()
        clause.word = self._word()
        self._linebreaks()
        self._expect_reserved('in')

        while True:
            self._linebreaks()
            if self._reserved_at(('esac',)):
                lx.advance(4)
                break
            if lx.at_eof():
                raise self._error('reached EOF without matching "case" with "esac"')

            item = CaseItem(line=lx.line, column=lx.column)
            if lx.current() == '(':
                lx.advance()
            while True:
                lx.skip_blanks()
                item.patterns.append(self._word())
                lx.skip_blanks()
                if lx.current() == '|':
                    lx.advance()
                    continue
                break
            if lx.current() != ')':
                raise self._error("case patterns must be followed by ')'")
            lx.advance()

            item.stmts = self._stmt_list(frozenset({'esac'}))
            for op in (';;&', ';;', ';&'):
                if lx.startswith(op):
                    lx.advance(len(op))
                    item.op = op
                    break
            clause.items.append(item)
        return clause

    def _function_keyword(self) -> FuncDecl:
        lx = self.lexer
        decl = FuncDecl(rsrv_word=True, line=lx.line, column=lx.column)
        lx.advance(len('function'))
        lx.skip_blanks()
        name = self._word().lit()
        if name is None:
            raise self._error("invalid function name")
        decl.name = name
        lx.skip_blanks()
        if lx.current() == '(':
            lx.advance()
            lx.skip_blanks()
            if lx.current() != ')':
                raise self._error("expected ')' after '('")
            lx.advance()
        self._linebreaks()
        decl.body = self._command()
        return decl

    def _func_decl(self, name: Word) -> FuncDecl:
        lx = self.lexer
        lx.advance()  # (
        lx.skip_blanks()
        if lx.current() != ')':
            raise self._error("expected ')' after '('")
        lx.advance()
        self._linebreaks()
        body = self._command()
        return FuncDecl(name=name.lit(), body=body, line=name.line, column=name.column)

    def _test_clause(self) -> TestClause:
        lx = self.lexer
        clause = TestClause(line=lx.line, column=lx.column)
        lx.advance(2)
        while True:
            self._linebreaks()
            if lx.startswith(']]') and lx.at_word_end(2):
                lx.advance(2)
                break
            if lx.at_eof():
                raise self._error("reached EOF without matching '[[' with ']]'")
            m = lx.match(TEST_OPERATOR_RE)
            if m:
                op = Lit(value=m.group(0), line=lx.line, column=lx.column)
                clause.words.append(Word(parts=[op], line=op.line, column=op.column))
                lx.advance(len(op.value))
                continue
            clause.words.append(self._word(TEST_DELIMITERS))
        return clause

    def _arithm_cmd(self) -> ArithmCmd:
        lx = self.lexer
        cmd = ArithmCmd(line=lx.line, column=lx.column)
        lx.advance(2)
        line, column = lx.line, lx.column
        cmd.expr = Word(parts=self._arithm_parts('))'), line=line, column=column)
        lx.advance(2)
        return cmd

    # -------------------------------------------------------------------------
    # Words
    # -------------------------------------------------------------------------

    def _word(self, delimiters: FrozenSet[str] = WORD_DELIMITERS) -> Word:
        """Parse one unquoted word; raises if no word starts at the cursor."""
        lx = self.lexer
        word = Word(line=lx.line, column=lx.column)
        parts = word.parts
        buf: List[str] = []
        buf_pos = (lx.line, lx.column)

        def flush():
            if buf:
                parts.append(Lit(value=''.join(buf), line=buf_pos[0], column=buf_pos[1]))
                buf.clear()

        while True:
            ch = lx.current()
            if ch is None:
                break
            if not buf:
                buf_pos = (lx.line, lx.column)
            if ch == '\\':
                nxt = lx.peek()
                if nxt == '\n':
                    lx.advance(2)
                    continue
                buf.append(ch)
                if nxt is not None:
                    buf.append(nxt)
                lx.advance(2)
                continue
            if ch in ('<', '>') and lx.peek() == '(' and not parts and not buf:
                parts.append(self._proc_subst())
                continue
            if ch in delimiters:
                break
            if ch in '?*+@!' and lx.peek() == '(':
                flush()
                parts.append(self._ext_glob())
            elif ch == "'":
                flush()
                parts.append(self._sgl_quoted())
            elif ch == '"':
                flush()
                parts.append(self._dbl_quoted())
            elif ch == '`':
                flush()
                parts.append(self._backquote())
            elif ch == '$':
                node = self._dollar()
                if node is None:
                    buf.append(ch)
                    lx.advance()
                else:
                    flush()
                    parts.append(node)
            else:
                buf.append(ch)
                lx.advance()

        flush()
        if not parts:
            if lx.at_eof():
                raise self._error("unexpected end of file")
            raise self._error(f"unexpected {lx.current()!r}")
        return word

    def _quoted_parts(self, stop: Optional[str]) -> List[ASTNode]:
        """Parse double-quote style content up to ``stop`` (or EOF if None)."""
        lx = self.lexer
        parts: List[ASTNode] = []
        buf: List[str] = []
        buf_pos = (lx.line, lx.column)

        def flush():
            if buf:
                parts.append(Lit(value=''.join(buf), line=buf_pos[0], column=buf_pos[1]))
                buf.clear()

        while True:
            ch = lx.current()
            if ch is None or (stop is not None and ch == stop):
                break
            if not buf:
                buf_pos = (lx.line, lx.column)
            if ch == '\\':
                nxt = lx.peek()
                if nxt == '\n':
                    lx.advance(2)
                    continue
                if nxt is not None and nxt in '$`"\\':
                    buf.append(ch + nxt)
                    lx.advance(2)
                else:
                    buf.append(ch)
                    lx.advance()
                continue
            if ch == '`':
                flush()
                parts.append(self._backquote())
                continue
            if ch == '$':
                node = self._dollar(quoted=True)
                if node is not None:
                    flush()
                    parts.append(node)
                    continue
            buf.append(ch)
            lx.advance()

        flush()
        return parts

    def _sgl_quoted(self, dollar: bool = False) -> SglQuoted:
        lx = self.lexer
        node = SglQuoted(dollar=dollar, line=lx.line, column=lx.column)
        lx.advance()
        chars = []
        while True:
            ch = lx.current()
            if ch is None:
                raise ParseError("reached EOF without closing quote '",
                                 node.line, node.column, self.filename)
            if ch == "'":
                lx.advance()
                break
            if dollar and ch == '\\' and lx.peek() is not None:
                chars.append(ch + lx.peek())
                lx.advance(2)
                continue
            chars.append(ch)
            lx.advance()
        node.value = ''.join(chars)
        return node

    def _dbl_quoted(self) -> DblQuoted:
        lx = self.lexer
        node = DblQuoted(line=lx.line, column=lx.column)
        lx.advance()
        node.parts = self._quoted_parts(stop='"')
        if lx.current() != '"':
            raise ParseError('reached EOF without closing quote "',
                             node.line, node.column, self.filename)
        lx.advance()
        return node

    def _dollar(self, quoted: bool = False) -> Optional[ASTNode]:
        """Parse an expansion starting with '$'; None if '$' is literal."""
        lx = self.lexer
        line, column = lx.line, lx.column
        nxt = lx.peek()
        if nxt is None:
            return None

        if nxt == "'" and not quoted:
            lx.advance()
            node = self._sgl_quoted(dollar=True)
        elif nxt == '"' and not quoted:
            lx.advance()
            node = self._dbl_quoted()
            node.dollar = True
        elif lx.startswith('$(('):
            node = self._arithm_exp()
        elif nxt == '(':
            node = self._cmd_subst()
        elif nxt == '[':
            node = self._arithm_exp(bracket=True)
        elif nxt == '{':
            node = self._param_exp()
        elif nxt in NAME_START:
            lx.advance()
            node = ParamExp(param=lx.read_name(), short=True)
        elif nxt in DIGITS or nxt in SPECIAL_PARAMS:
            lx.advance(2)
            node = ParamExp(param=nxt, short=True)
        else:
            return None

        node.line, node.column = line, column
        return node

    def _backquote(self) -> CmdSubst:
        lx = self.lexer
        node = CmdSubst(backquotes=True, line=lx.line, column=lx.column)
        lx.advance()
        line, column = lx.line, lx.column
        chars = []
        while True:
            ch = lx.current()
            if ch is None:
                raise ParseError("reached EOF without closing quote `",
                                 node.line, node.column, self.filename)
            if ch == '`':
                lx.advance()
                break
            if ch == '\\' and lx.peek() in ('`', '$', '\\'):
                chars.append(lx.peek())
                lx.advance(2)
                continue
            chars.append(ch)
            lx.advance()

        sub = Parser(''.join(chars), self.filename, line, column)
        node.stmts = sub.parse().stmts
        return node

    def _cmd_subst(self) -> CmdSubst:
        lx = self.lexer
        node = CmdSubst(line=lx.line, column=lx.column)
        lx.advance(2)
        node.stmts = self._stmt_list(frozenset({')'}))
        if lx.current() != ')':
            raise ParseError("reached EOF without matching '$(' with ')'",
                             node.line, node.column, self.filename)
        lx.advance()
        return node

    def _proc_subst(self) -> ProcSubst:
        lx = self.lexer
        node = ProcSubst(op=lx.current() + '(', line=lx.line, column=lx.column)
        lx.advance(2)
        node.stmts = self._stmt_list(frozenset({')'}))
        if lx.current() != ')':
            raise ParseError(f"reached EOF without matching '{node.op}' with ')'",
                             node.line, node.column, self.filename)
        lx.advance()
        return node

    def _ext_glob(self) -> ExtGlob:
        lx = self.lexer
        node = ExtGlob(op=lx.current() + '(', line=lx.line, column=lx.column)
        lx.advance(2)
        start = lx.pos
        depth = 1
        while True:
            ch = lx.current()
            if ch is None:
                raise ParseError(f"reached EOF without matching '{node.op}' with ')'",
                                 node.line, node.column, self.filename)
            if ch == '(':
                depth += 1
            elif ch == ')':
                depth -= 1
                if depth == 0:
                    break
            lx.advance()
        node.pattern = lx.source[start:lx.pos]
        lx.advance()
        return node

    def _arithm_exp(self, bracket: bool = False) -> ArithmExp:
        lx = self.lexer
        node = ArithmExp(bracket=bracket, line=lx.line, column=lx.column)
        end = ']' if bracket else '))'
        lx.advance(2 if bracket else 3)
        node.parts = self._arithm_parts(end)
        lx.advance(len(end))
        return node

    def _arithm_parts(self, end: str) -> List[ASTNode]:
        """Parse arithmetic content up to (not including) ``end``."""
        lx = self.lexer
        line, column = lx.line, lx.column
        parts: List[ASTNode] = []
        buf: List[str] = []
        buf_pos = (lx.line, lx.column)
        depth = 0

        def flush():
            if buf:
                parts.append(Lit(value=''.join(buf), line=buf_pos[0], column=buf_pos[1]))
                buf.clear()

        while True:
            ch = lx.current()
            if ch is None:
                raise ParseError(f"reached EOF without closing '{end}'",
                                 line, column, self.filename)
            if depth == 0 and lx.startswith(end):
                break
            if not buf:
                buf_pos = (lx.line, lx.column)
            if ch == '\\' and lx.peek() == '\n':
                lx.advance(2)
                continue
            if ch == '$':
                node = self._dollar()
                if node is not None:
                    flush()
                    parts.append(node)
                    continue
            elif ch == '`':
                flush()
                parts.append(self._backquote())
                continue
            elif ch == '"':
                flush()
                parts.append(self._dbl_quoted())
                continue
            elif ch == '(':
                depth += 1
            elif ch == ')':
                depth -= 1
            buf.append(ch)
            lx.advance()

        flush()
        return parts

    def _param_exp(self) -> ParamExp:
        lx = self.lexer
        node = ParamExp(line=lx.line, column=lx.column)
        lx.advance(2)

        ch, nxt = lx.current(), lx.peek()
        if ch == '#' and nxt is not None and (nxt in NAME_CHARS or nxt in '@*'):
            node.length = True
            lx.advance()
        elif ch == '!' and nxt is not None and (nxt in NAME_CHARS or nxt in '@*#'):
            node.excl = True
            lx.advance()
        elif ch == '%' and nxt is not None and nxt in NAME_START:
            node.width = True
            lx.advance()

        ch = lx.current()
        if ch is not None and ch in NAME_START:
            node.param = lx.read_name()
        elif ch is not None and ch in DIGITS:
            start = lx.pos
            while lx.current() is not None and lx.current() in DIGITS:
                lx.advance()
            node.param = lx.source[start:lx.pos]
        elif ch is not None and ch in SPECIAL_PARAMS:
            node.param = ch
            lx.advance()
        else:
            raise self._error("invalid parameter name")

        if lx.current() == '[':
            node.index = self._param_index()
        if node.excl and lx.current() in ('*', '@') and lx.peek() == '}':
            lx.advance()

        ch, nxt = lx.current(), lx.peek()
        line, column = lx.line, lx.column
        if ch == '}':
            pass
        elif ch == ':' and nxt is not None and nxt in '-=?+':
            lx.advance(2)
            node.exp = Expansion(op=ch + nxt, word=self._param_word('}'),
                                 line=line, column=column)
        elif ch == ':':
            lx.advance()
            node.slice = Slice(offset=self._param_word(':}'), line=line, column=column)
            if lx.current() == ':':
                lx.advance()
                node.slice.length = self._param_word('}')
        elif ch is not None and ch in '-=?+':
            lx.advance()
            node.exp = Expansion(op=ch, word=self._param_word('}'),
                                 line=line, column=column)
        elif ch is not None and ch in '%#^,':
            op = ch * 2 if nxt == ch else ch
            lx.advance(len(op))
            node.exp = Expansion(op=op, word=self._param_word('}'),
                                 line=line, column=column)
        elif ch == '/':
            lx.advance()
            node.repl = Replace(line=line, column=column)
            if lx.current() == '/':
                node.repl.all = True
                lx.advance()
            elif lx.current() in ('#', '%'):
                lx.advance()
            node.repl.orig = self._param_word('/}')
            if lx.current() == '/':
                lx.advance()
                node.repl.with_ = self._param_word('}')
        elif ch == '@' and nxt is not None and nxt in NAME_START:
            lx.advance(2)
            node.exp = Expansion(op=ch + nxt, line=line, column=column)
        elif ch is None:
            pass
        else:
            raise self._error(f"invalid parameter expansion operator {ch!r}")

        if lx.current() != '}':
            raise ParseError("reached EOF without matching '${' with '}'",
                             node.line, node.column, self.filename)
        lx.advance()
        return node

    def _param_index(self) -> Word:
        lx = self.lexer
        lx.advance()  # [
        line, column = lx.line, lx.column
        start = lx.pos
        depth = 1
        while True:
            ch = lx.current()
            if ch is None:
                raise self._error("reached EOF without matching '[' with ']'")
            if ch == '[':
                depth += 1
            elif ch == ']':
                depth -= 1
                if depth == 0:
                    break
            lx.advance()
        text = lx.source[start:lx.pos]
        lx.advance()
        return self._inline_word(text, line, column)

    def _param_word(self, stops: str) -> Optional[Word]:
        """Parse the operand of a ${...} operator; None when empty."""
        lx = self.lexer
        word = Word(line=lx.line, column=lx.column)
        parts = word.parts
        buf: List[str] = []
        buf_pos = (lx.line, lx.column)
        depth = 0

        def flush():
            if buf:
                parts.append(Lit(value=''.join(buf), line=buf_pos[0], column=buf_pos[1]))
                buf.clear()

        while True:
            ch = lx.current()
            if ch is None:
                raise self._error("reached EOF without matching '${' with '}'")
            if depth == 0 and ch in stops:
                break
            if not buf:
                buf_pos = (lx.line, lx.column)
            if ch == '\\':
                nxt = lx.peek()
                if nxt == '\n':
                    lx.advance(2)
                    continue
                buf.append(ch)
                if nxt is not None:
                    buf.append(nxt)
                lx.advance(2)
                continue
            if ch == "'":
                flush()
                parts.append(self._sgl_quoted())
                continue
            if ch == '"':
                flush()
                parts.append(self._dbl_quoted())
                continue
            if ch == '`':
                flush()
                parts.append(self._backquote())
                continue
            if ch == '$':
                node = self._dollar()
                if node is not None:
                    flush()
                    parts.append(node)
                    continue
            elif ch == '{':
                depth += 1
            elif ch == '}':
                depth -= 1
            buf.append(ch)
            lx.advance()

        flush()
        return word if parts else None


def _heredoc_delimiter(word: Word) -> Tuple[str, bool]:
    """Return a here-document delimiter's text and whether it was quoted."""
    text = []
    quoted = False
    for part in word.parts:
        if isinstance(part, Lit):
            if '\\' in part.value:
                quoted = True
            text.append(part.value.replace('\\', ''))
        elif isinstance(part, SglQuoted):
            quoted = True
            text.append(part.value)
        elif isinstance(part, DblQuoted):
            quoted = True
            text.extend(p.value for p in part.parts if isinstance(p, Lit))
        else:
            quoted = True
    return ''.join(text), quoted


def parse_source(source: str, filename: str = "<unknown>") -> File:
    """Parse shell source text into a syntax tree."""
    parser = Parser(source, filename)
    try:
        tree = parser.parse()
    except LexerError as e:
        raise ParseError(e.message, e.line, e.column, filename) from e
    except RecursionError as e:
        lx = parser.lexer
        raise ParseError("nesting too deep", lx.line, lx.column, filename) from e
    logger.debug("Parsed %s: %d top-level items", filename, len(tree.stmts))
    return tree


def parse_file(filepath: str) -> File:
    """Parse a file into a syntax tree. Handles encoding fallback."""
    # Try UTF-8 first, then latin-1 (which always succeeds)
    for encoding in ['utf-8', 'latin-1']:
        try:
            with open(filepath, 'r', encoding=encoding) as f:
                source = f.read()
            break
        except UnicodeDecodeError:
            continue

    return parse_source(source, str(filepath))
