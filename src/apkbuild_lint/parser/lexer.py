"""
Shell Script Lexer

Character-level cursor over shell source text. Shell tokenization depends
on the grammatical context (quotes, parameter expansions, here-documents),
so the parser drives this lexer directly instead of consuming a flat token
stream. Handles: position tracking, blanks, line continuations, comments.
"""

import re
from typing import Optional, Pattern


# Characters that terminate an unquoted word
WORD_DELIMITERS = frozenset(" \t\r\n;&|<>()")

# Characters that may appear in a shell variable name
NAME_START = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_")
NAME_CHARS = NAME_START | frozenset("0123456789")


class LexerError(Exception):
    """Error during lexical analysis."""
    def __init__(self, message: str, line: int, column: int):
        self.line = line
        self.column = column
        self.message = message
        super().__init__(f"Lexer error at line {line}, column {column}: {message}")


class Lexer:
    """
    Cursor over shell source text.

    Usage:
        lexer = Lexer(source_text)
        while not lexer.at_eof():
            ch = lexer.advance()

    ``line`` and ``column`` allow a lexer to start in the middle of another
    file, which is how backquoted substitutions and here-document bodies
    keep positions relative to the enclosing script.
    """

    def __init__(self, source: str, filename: str = "<unknown>",
                 line: int = 1, column: int = 1):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = line
        self.column = column
        self.length = len(source)

    def current(self) -> Optional[str]:
        """Get current character or None if at end."""
        if self.pos >= self.length:
            return None
        return self.source[self.pos]

    def peek(self, offset: int = 1) -> Optional[str]:
        """Peek ahead by offset characters."""
        pos = self.pos + offset
        if pos >= self.length:
            return None
        return self.source[pos]

    def at_eof(self) -> bool:
        return self.pos >= self.length

    def advance(self, count: int = 1) -> Optional[str]:
        """Advance ``count`` characters and return the last one consumed."""
        ch = None
        for _ in range(count):
            ch = self.current()
            if ch is None:
                break
            self.pos += 1
            if ch == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return ch

    def startswith(self, text: str) -> bool:
        return self.source.startswith(text, self.pos)

    def match(self, pattern: Pattern) -> Optional["re.Match"]:
        """Match a compiled regex at the current position without consuming."""
        return pattern.match(self.source, self.pos)

    def at_word_end(self, offset: int = 0) -> bool:
        """Check if the character at ``offset`` ends an unquoted word."""
        ch = self.peek(offset) if offset else self.current()
        return ch is None or ch in WORD_DELIMITERS

    def skip_blanks(self) -> None:
        """Skip spaces, tabs and escaped newlines (but not newlines)."""
        while True:
            ch = self.current()
            if ch in (' ', '\t', '\r'):
                self.advance()
            elif ch == '\\' and self.peek() == '\n':
                self.advance(2)
            else:
                break

    def read_comment(self) -> str:
        """Read a comment from # to end of line, returning the text after #."""
        if self.current() != '#':
            raise LexerError("Expected '#'", self.line, self.column)
        self.advance()
        start = self.pos
        end = self.source.find('\n', start)
        if end == -1:
            end = self.length
        self.advance(end - start)
        return self.source[start:end]

    def read_name(self) -> str:
        """Read a shell variable name; returns '' if none starts here."""
        if self.current() not in NAME_START:
            return ''
        start = self.pos
        while self.current() is not None and self.current() in NAME_CHARS:
            self.advance()
        return self.source[start:self.pos]

    def read_line(self) -> Optional[str]:
        """Read a raw line without its newline; None at end of input."""
        if self.at_eof():
            return None
        start = self.pos
        end = self.source.find('\n', start)
        if end == -1:
            self.advance(self.length - start)
            return self.source[start:]
        self.advance(end - start + 1)
        return self.source[start:end]
