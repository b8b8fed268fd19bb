"""
Tests for the apkbuild_lint shell parser.
"""

import pytest

from apkbuild_lint.parser import (
    ArithmExp,
    Assign,
    BinaryCmd,
    Block,
    CallExpr,
    CaseClause,
    CmdSubst,
    Comment,
    DblQuoted,
    DeclClause,
    ExtGlob,
    ForClause,
    FuncDecl,
    IfClause,
    LetClause,
    Lit,
    NodeType,
    ParamExp,
    ParseError,
    Position,
    ProcSubst,
    SglQuoted,
    Stmt,
    TestClause,
    WhileClause,
    WordIter,
    parse_file,
    parse_source,
    walk,
)


def first_cmd(source):
    """Parse source and return the command of the first statement."""
    stmt = parse_source(source).stmts[0]
    assert isinstance(stmt, Stmt)
    return stmt.cmd


def collect(tree, node_type):
    found = []

    def visit(node):
        if node.node_type is node_type:
            found.append(node)
        return True

    walk(tree, visit)
    return found


class TestBasicParsing:
    """Test basic parsing functionality."""

    def test_empty_source(self):
        tree = parse_source("")
        assert tree.stmts == []

    def test_simple_command(self):
        cmd = first_cmd("echo hello world")
        assert isinstance(cmd, CallExpr)
        assert [w.lit() for w in cmd.args] == ["echo", "hello", "world"]

    def test_assignment(self):
        cmd = first_cmd("pkgname=foo")
        assert isinstance(cmd, CallExpr)
        assert cmd.args == []
        assign = cmd.assigns[0]
        assert assign.name == "pkgname"
        assert assign.value.lit() == "foo"
        assert assign.pos == Position(1, 1)

    def test_empty_assignment(self):
        assign = first_cmd("depends=").assigns[0]
        assert assign.name == "depends"
        assert assign.value is None

    def test_append_assignment(self):
        assign = first_cmd('makedepends+=" foo"').assigns[0]
        assert assign.append
        assert isinstance(assign.value.parts[0], DblQuoted)

    def test_array_assignment(self):
        assign = first_cmd("arr=(a b\nc)").assigns[0]
        assert [w.lit() for w in assign.array] == ["a", "b", "c"]

    def test_inline_env_override(self):
        cmd = first_cmd("FOO=bar make install")
        assert [a.name for a in cmd.assigns] == ["FOO"]
        assert [w.lit() for w in cmd.args] == ["make", "install"]

    def test_positions_are_one_based(self):
        tree = parse_source("a=1\n  b=2")
        second = tree.stmts[1].cmd.assigns[0]
        assert (second.line, second.column) == (2, 3)

    def test_separators(self):
        tree = parse_source("a=1; b=2\nc=3 &")
        assert len(tree.stmts) == 3
        assert tree.stmts[2].background

    def test_line_continuation(self):
        cmd = first_cmd("make \\\n\tinstall")
        assert [w.lit() for w in cmd.args] == ["make", "install"]


class TestComments:
    """Test that comments are kept as nodes."""

    def test_comment_text(self):
        tree = parse_source("# Maintainer: A <a@b>\npkgname=foo")
        comment = tree.stmts[0]
        assert isinstance(comment, Comment)
        assert comment.text == " Maintainer: A <a@b>"
        assert comment.pos == Position(1, 1)

    def test_trailing_comment(self):
        tree = parse_source("pkgname=foo #bar")
        assert isinstance(tree.stmts[1], Comment)
        assert tree.stmts[1].text == "bar"
        assert tree.stmts[1].column == 13

    def test_hash_inside_word(self):
        cmd = first_cmd("echo foo#bar")
        assert cmd.args[1].lit() == "foo#bar"

    def test_comment_inside_function(self):
        tree = parse_source("f() {\n\t#foo\n\ttrue\n}")
        comments = collect(tree, NodeType.COMMENT)
        assert len(comments) == 1
        assert comments[0].pos == Position(2, 2)

    def test_empty_comment(self):
        tree = parse_source("#\n")
        assert tree.stmts[0].text == ""


class TestWords:
    """Test quoting and expansions."""

    def test_single_quotes(self):
        part = first_cmd("echo 'a $b'").args[1].parts[0]
        assert isinstance(part, SglQuoted)
        assert part.value == "a $b"
        assert not part.dollar

    def test_dollar_single_quotes(self):
        part = first_cmd("echo $'foo'").args[1].parts[0]
        assert isinstance(part, SglQuoted)
        assert part.dollar
        assert part.value == "foo"

    def test_double_quotes_with_expansion(self):
        quoted = first_cmd('echo "$pkgdir/usr"').args[1].parts[0]
        assert isinstance(quoted, DblQuoted)
        param, lit = quoted.parts
        assert isinstance(param, ParamExp)
        assert param.short and param.param == "pkgdir"
        assert lit.value == "/usr"

    def test_short_param_position(self):
        param = first_cmd("echo $foo").args[1].parts[0]
        assert param.pos == Position(1, 6)

    def test_special_params(self):
        args = first_cmd("echo $@ $1 $#").args
        assert [a.parts[0].param for a in args[1:]] == ["@", "1", "#"]

    def test_long_param(self):
        param = first_cmd("x=${pkgname}").assigns[0].value.parts[0]
        assert not param.short
        assert param.param == "pkgname"
        assert not param.has_modifier()

    def test_param_length(self):
        param = first_cmd("echo ${#foo}").args[1].parts[0]
        assert param.length
        assert param.param == "foo"

    def test_param_default(self):
        param = first_cmd("x=${foo:-$bar}").assigns[0].value.parts[0]
        assert param.exp.op == ":-"
        assert param.exp.word.parts[0].param == "bar"

    def test_param_trim(self):
        param = first_cmd("x=${pkgver%%_*}").assigns[0].value.parts[0]
        assert param.exp.op == "%%"
        assert param.exp.word.lit() == "_*"

    def test_param_replace(self):
        param = first_cmd("x=${pkgver//./_}").assigns[0].value.parts[0]
        assert param.repl.all
        assert param.repl.orig.lit() == "."
        assert param.repl.with_.lit() == "_"

    def test_param_slice(self):
        param = first_cmd("x=${foo:1:2}").assigns[0].value.parts[0]
        assert param.slice.offset.lit() == "1"
        assert param.slice.length.lit() == "2"

    def test_param_index(self):
        param = first_cmd("x=${arr[1]}").assigns[0].value.parts[0]
        assert param.index.lit() == "1"
        assert param.has_modifier()

    def test_multi_digit_positional(self):
        param = first_cmd("echo ${10}").args[1].parts[0]
        assert param.param == "10"

    def test_cmd_subst(self):
        subst = first_cmd("x=$(uname -m)").assigns[0].value.parts[0]
        assert isinstance(subst, CmdSubst)
        assert subst.pos == Position(1, 3)
        assert [w.lit() for w in subst.stmts[0].cmd.args] == ["uname", "-m"]

    def test_backquotes(self):
        subst = first_cmd("x=`uname -m`").assigns[0].value.parts[0]
        assert isinstance(subst, CmdSubst)
        assert subst.backquotes
        assert subst.stmts[0].cmd.args[0].lit() == "uname"

    def test_arithmetic_expansion(self):
        arith = first_cmd("x=$(( $a + 1 ))").assigns[0].value.parts[0]
        assert isinstance(arith, ArithmExp)
        assert any(isinstance(p, ParamExp) and p.param == "a" for p in arith.parts)

    def test_escaped_dollar_is_literal(self):
        word = first_cmd("echo \\$foo").args[1]
        assert word.lit() == "\\$foo"

    def test_ext_glob(self):
        glob = first_cmd("bar=*(foo bar)").assigns[0].value.parts[0]
        assert isinstance(glob, ExtGlob)
        assert glob.op == "*("
        assert glob.pattern == "foo bar"
        assert glob.pos == Position(1, 5)

    def test_proc_subst(self):
        subst = first_cmd("echo >(true)").args[1].parts[0]
        assert isinstance(subst, ProcSubst)
        assert subst.op == ">("
        assert subst.pos == Position(1, 6)


class TestRedirects:
    """Test redirections and here-documents."""

    def test_output_redirect(self):
        stmt = parse_source("echo foo > bar 2>&1").stmts[0]
        assert [r.op for r in stmt.redirs] == [">", ">&"]
        assert stmt.redirs[1].fd == "2"
        assert [w.lit() for w in stmt.cmd.args] == ["echo", "foo"]

    def test_redirect_only(self):
        stmt = parse_source("> file").stmts[0]
        assert stmt.cmd is None
        assert stmt.redirs[0].word.lit() == "file"

    def test_heredoc(self):
        source = 'cat > foo <<EOF\nhello $name\nEOF\necho done'
        tree = parse_source(source)
        assert len(tree.stmts) == 2
        heredoc = tree.stmts[0].redirs[1].heredoc
        params = [p for p in heredoc.parts if isinstance(p, ParamExp)]
        assert params[0].param == "name"
        assert params[0].pos == Position(2, 7)

    def test_quoted_heredoc_is_literal(self):
        tree = parse_source("cat <<'EOF'\n$foo\nEOF\n")
        heredoc = tree.stmts[0].redirs[0].heredoc
        assert isinstance(heredoc.parts[0], Lit)
        assert heredoc.parts[0].value == "$foo\n"

    def test_heredoc_dash_strips_tabs(self):
        tree = parse_source("f() {\n\tcat <<-EOF\n\tfoo\n\tEOF\n}\n")
        assert isinstance(tree.stmts[0].cmd, FuncDecl)


class TestCompoundCommands:
    """Test compound commands and function declarations."""

    def test_function(self):
        decl = first_cmd("build() {\n\tmake\n}")
        assert isinstance(decl, FuncDecl)
        assert decl.name == "build"
        assert not decl.rsrv_word
        assert isinstance(decl.body.cmd, Block)
        assert decl.pos == Position(1, 1)

    def test_function_keyword(self):
        decl = first_cmd("function f() {\nreturn 1\n}")
        assert isinstance(decl, FuncDecl)
        assert decl.name == "f"
        assert decl.rsrv_word

    def test_function_keyword_without_parens(self):
        decl = first_cmd("function f {\n:\n}")
        assert decl.name == "f"
        assert decl.rsrv_word

    def test_if_elif_else(self):
        clause = first_cmd("if a; then b; elif c; then d; else e; fi")
        assert isinstance(clause, IfClause)
        nested = clause.else_[0].cmd
        assert isinstance(nested, IfClause)
        assert nested.else_[0].cmd.args[0].lit() == "e"

    def test_while(self):
        clause = first_cmd("while read line; do\n\techo $line\ndone < file")
        assert isinstance(clause, WhileClause)
        assert clause.body[0].cmd.args[0].lit() == "echo"

    def test_for_loop(self):
        clause = first_cmd('for foobar in "a" "b"; do echo "$foobar"; done')
        assert isinstance(clause, ForClause)
        assert isinstance(clause.loop, WordIter)
        assert clause.loop.name == "foobar"
        assert clause.loop.pos == Position(1, 5)
        assert len(clause.loop.items) == 2

    def test_for_without_in(self):
        clause = first_cmd("for arg; do echo $arg; done")
        assert clause.loop.items == []
        assert not clause.loop.in_list

    def test_select(self):
        clause = first_cmd("select s in foo bar; do\n\techo $s\ndone")
        assert clause.select

    def test_case(self):
        source = 'case "$CARCH" in\nx86*|arm) foo=1 ;;\n*) ;;\nesac'
        clause = first_cmd(source)
        assert isinstance(clause, CaseClause)
        assert len(clause.items) == 2
        assert [p.lit() for p in clause.items[0].patterns] == ["x86*", "arm"]
        assert clause.items[0].stmts[0].cmd.assigns[0].name == "foo"

    def test_and_or(self):
        cmd = first_cmd("a && b || c")
        assert isinstance(cmd, BinaryCmd)
        assert cmd.op == "||"
        assert cmd.x.cmd.op == "&&"

    def test_pipeline(self):
        cmd = first_cmd("find . | sort")
        assert isinstance(cmd, BinaryCmd)
        assert cmd.op == "|"

    def test_negation(self):
        stmt = parse_source("! grep foo bar").stmts[0]
        assert stmt.negated

    def test_subshell_and_block(self):
        tree = parse_source("(cd foo && make)\n{ a; b; }")
        assert tree.stmts[0].cmd.node_type is NodeType.SUBSHELL
        assert tree.stmts[1].cmd.node_type is NodeType.BLOCK

    def test_test_clause(self):
        cmd = first_cmd('[[ -e "$builddir" ]] && foo=bar')
        assert isinstance(cmd.x.cmd, TestClause)
        assert cmd.x.cmd.pos == Position(1, 1)
        assert cmd.y.cmd.assigns[0].name == "foo"

    def test_posix_test_is_a_command(self):
        cmd = first_cmd('[ -e "$builddir" ]')
        assert isinstance(cmd, CallExpr)
        assert cmd.args[0].lit() == "["


class TestDeclarations:
    """Test declaration builtins."""

    def test_local(self):
        decl = first_cmd("local foo=1 bar")
        assert isinstance(decl, DeclClause)
        assert decl.variant == "local"
        assert [a.name for a in decl.assigns] == ["foo", "bar"]
        assert decl.assigns[1].naked

    def test_declare_options(self):
        decl = first_cmd("declare -A foobar")
        assert decl.variant == "declare"
        assert decl.opts[0].lit() == "-A"
        assert decl.assigns[0].name == "foobar"

    def test_export(self):
        decl = first_cmd('export CFLAGS="$CFLAGS -O2"')
        assert decl.variant == "export"
        assert isinstance(decl.assigns[0], Assign)

    def test_let(self):
        clause = first_cmd("let x=1+2")
        assert isinstance(clause, LetClause)
        assert clause.exprs[0].lit() == "x=1+2"


class TestWalk:
    """Test tree traversal."""

    def test_preorder(self):
        tree = parse_source("a=$(b)\nc=1")
        names = [n.name for n in collect(tree, NodeType.ASSIGN)]
        assert names == ["a", "c"]

    def test_pruning(self):
        tree = parse_source("f() {\nx=1\n}\ny=2")
        seen = []

        def visit(node):
            if node.node_type is NodeType.ASSIGN:
                seen.append(node.name)
            return node.node_type is not NodeType.FUNC_DECL

        walk(tree, visit)
        assert seen == ["y"]

    def test_long_and_chain(self):
        tree = parse_source("true" + " && true" * 2000)
        assert len(collect(tree, NodeType.BINARY_CMD)) == 2000
        assert len(collect(tree, NodeType.CALL_EXPR)) == 2001


class TestErrors:
    """Test parse errors."""

    @pytest.mark.parametrize("source", [
        "echo 'unterminated",
        'echo "unterminated',
        "x=$(ls",
        "x=${foo",
        "if true; then",
        "for x in a; do echo",
        "case x in\na) ;;\n",
        "fi",
        "echo )",
    ])
    def test_invalid_source(self, source):
        with pytest.raises(ParseError):
            parse_source(source)

    def test_error_position(self):
        with pytest.raises(ParseError) as excinfo:
            parse_source("a=1\nb=2\n  done", "APKBUILD")
        assert excinfo.value.line == 3
        assert excinfo.value.column == 3
        assert excinfo.value.filename == "APKBUILD"

    def test_nesting_too_deep(self):
        source = "( " * 5000 + "true" + " )" * 5000
        with pytest.raises(ParseError) as excinfo:
            parse_source(source, "APKBUILD")
        assert excinfo.value.message == "nesting too deep"
        assert excinfo.value.filename == "APKBUILD"


class TestParseFile:

    def test_parse_file(self, tmp_path):
        path = tmp_path / "APKBUILD"
        path.write_text("pkgname=foo\n", encoding="utf-8")
        tree = parse_file(path)
        assert tree.name == str(path)
        assert tree.stmts[0].cmd.assigns[0].name == "pkgname"

    def test_latin1_fallback(self, tmp_path):
        path = tmp_path / "APKBUILD"
        path.write_bytes(b"# Maintainer: J\xe9r\xf4me <j@example.org>\n")
        tree = parse_file(path)
        assert tree.stmts[0].text.startswith(" Maintainer: J")
