"""
Parser Test Suite
=================
Tests for:
  - Commands, pipes and pipe breaks
  - Named arguments (bare, quoted, closure) and their validation
  - Unnamed text: macros, escapes, nested closures, split commands
  - Shorthand, comments, parser flags
  - ParseError offsets, line/column and hint
"""

from __future__ import annotations

import pytest

from slashscript.core.errors import ParseError
from slashscript.schemas import ParserFlag
from slashscript.services.commands.closure import Closure
from slashscript.services.commands.parser import ScriptParser


def values(executor) -> list:
    return [a.value for a in executor.unnamed_argument_list]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 1. Commands and pipes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestCommands:
    @pytest.fixture(autouse=True)
    def _parser(self, commands):
        self.parser = ScriptParser(commands)

    def test_empty(self):
        closure = self.parser.parse("")
        assert closure.executor_list == []
        assert closure.command_count == 0

    def test_single_command(self):
        closure = self.parser.parse("/echo hello world")
        [executor] = closure.executor_list
        assert executor.name == "echo"
        assert executor.command is not None
        assert values(executor) == ["hello world"]
        assert (executor.start, executor.end) == (0, 17)

    def test_pipe(self):
        closure = self.parser.parse("/echo a | /echo b\n| /echo c")
        assert [values(e) for e in closure.executor_list] == [["a"], ["b"], ["c"]]
        assert all(e.inject_pipe for e in closure.executor_list)

    def test_pipe_break(self):
        closure = self.parser.parse("/echo a || /echo")
        assert [e.inject_pipe for e in closure.executor_list] == [True, False]

    def test_empty_segments_ignored(self):
        closure = self.parser.parse("/echo a | | /echo b |")
        assert len(closure.executor_list) == 2

    def test_unknown_command_resolved_later(self):
        closure = self.parser.parse("/mystery key=1 text")
        [executor] = closure.executor_list
        assert executor.command is None
        assert executor.named_argument_list[0].name == "key"
        assert values(executor) == ["text"]

    def test_sources_are_distinct(self):
        closure = self.parser.parse("/echo a | /echo b")
        a, b = closure.executor_list
        assert a.source != b.source

    def test_non_command_text(self):
        with pytest.raises(ParseError) as exc:
            self.parser.parse("hello /echo")
        assert exc.value.start == 0

    def test_missing_name(self):
        with pytest.raises(ParseError):
            self.parser.parse("/ text")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 2. Named arguments
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestNamedArguments:
    @pytest.fixture(autouse=True)
    def _parser(self, commands):
        @commands.register("cmd", named_argument_list=[
            {"name": "a", "type_list": ["string", "closure"]}, {"name": "b"},
        ])
        def cmd(args, ctx):
            return ""

        self.parser = ScriptParser(commands)

    def test_bare_and_quoted(self):
        closure = self.parser.parse('/cmd a=one b="two | three" rest')
        [executor] = closure.executor_list
        named = {n.name: n.value for n in executor.named_argument_list}
        assert named == {"a": "one", "b": "two | three"}
        assert values(executor) == ["rest"]

    def test_quoted_escapes(self):
        closure = self.parser.parse(r'/cmd a="say \"hi\" \\ ok"')
        assert closure.executor_list[0].named_argument_list[0].value == 'say "hi" \\ ok'

    def test_bare_value_with_macro(self):
        closure = self.parser.parse("/cmd a={{reverse::x y}} tail")
        executor = closure.executor_list[0]
        assert executor.named_argument_list[0].value == "{{reverse::x y}}"
        assert values(executor) == ["tail"]

    def test_closure_value(self):
        closure = self.parser.parse("/cmd a={: /echo x | /echo y :}")
        arg = closure.executor_list[0].named_argument_list[0]
        assert arg.is_closure
        assert isinstance(arg.value, Closure)
        assert len(arg.value.executor_list) == 2

    def test_undeclared_key(self):
        with pytest.raises(ParseError) as exc:
            self.parser.parse("/cmd a=1 zzz=2")
        assert (exc.value.start, exc.value.end) == (9, 12)

    def test_unclosed_quote(self):
        with pytest.raises(ParseError) as exc:
            self.parser.parse('/cmd a="abc')
        assert exc.value.start == 7


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 3. Unnamed text
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestUnnamed:
    @pytest.fixture(autouse=True)
    def _parser(self, commands):
        @commands.register("words", split_unnamed=True)
        def words(args, ctx):
            return ""

        self.parser = ScriptParser(commands)

    def test_macro_span_is_verbatim(self):
        closure = self.parser.parse("/echo {{reverse::a|b}} c | /echo d")
        assert values(closure.executor_list[0]) == ["{{reverse::a|b}} c"]
        assert len(closure.executor_list) == 2

    def test_escapes(self):
        closure = self.parser.parse(r"/echo a \| b \{: c \:}")
        assert values(closure.executor_list[0]) == ["a | b {: c :}"]

    def test_stray_close_in_text(self):
        with pytest.raises(ParseError) as exc:
            self.parser.parse("/echo a :} b")
        assert (exc.value.start, exc.value.end) == (8, 10)

    def test_stray_close_between_commands(self):
        with pytest.raises(ParseError) as exc:
            self.parser.parse("/echo a | :} /echo b")
        assert (exc.value.start, exc.value.end) == (10, 12)

    def test_extra_close_after_closure(self):
        with pytest.raises(ParseError) as exc:
            self.parser.parse("/echo {: /echo a :} :}")
        assert exc.value.start == 20

    def test_nested_closure_parts(self):
        closure = self.parser.parse("/echo a {: /echo b :} c")
        parts = closure.executor_list[0].unnamed_argument_list
        assert [p.is_closure for p in parts] == [False, True, False]
        assert parts[0].value == "a "
        assert parts[2].value == " c"

    def test_nested_closure_ends_at_delimiter(self):
        closure = self.parser.parse("/echo {: /echo b | /echo c :} | /echo d")
        assert len(closure.executor_list) == 2
        inner = closure.executor_list[0].unnamed_argument_list[0].value
        assert [values(e) for e in inner.executor_list] == [["b"], ["c"]]

    def test_split_command(self):
        closure = self.parser.parse('/words a "b c" d')
        assert values(closure.executor_list[0]) == ["a", "b c", "d"]

    def test_shorthand(self):
        closure = self.parser.parse("/setvar::x::1 | /getvar::x")
        setvar, getvar = closure.executor_list
        assert values(setvar) == ["x", "1"]
        assert setvar.split_unnamed
        assert values(getvar) == ["x"]

    def test_comments(self):
        closure = self.parser.parse("// a note | /echo a | /# another | /echo b")
        assert [e.name for e in closure.executor_list] == ["echo", "echo"]

    def test_unterminated_closure(self):
        with pytest.raises(ParseError) as exc:
            self.parser.parse("/echo {: /echo a")
        assert exc.value.start == 6
        assert exc.value.end == 8

    def test_unterminated_nested_closure(self):
        with pytest.raises(ParseError) as exc:
            self.parser.parse("/echo {: /echo {: /echo a :}")
        assert exc.value.start == 6

    def test_error_location(self):
        with pytest.raises(ParseError) as exc:
            self.parser.parse("/echo a |\n/echo {: /x")
        err = exc.value
        assert (err.start, err.line, err.column) == (16, 2, 7)
        assert err.hint == "/echo {: /x\n      ^"
        assert "line 2, column 7" in str(err)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 4. Parser flags
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestParserFlags:
    @pytest.fixture(autouse=True)
    def _parser(self, commands):
        self.parser = ScriptParser(commands)

    def test_quotes_are_literal_by_default(self):
        closure = self.parser.parse('/echo "a b"')
        assert values(closure.executor_list[0]) == ['"a b"']

    def test_strict_escaping_flag_command(self):
        closure = self.parser.parse('/parser-flag STRICT_ESCAPING on | /echo "a | b"')
        [executor] = closure.executor_list
        assert values(executor) == ["a | b"]
        assert executor.parser_flags[ParserFlag.STRICT_ESCAPING] is True

    def test_strict_escaping_unbalanced_quote(self):
        with pytest.raises(ParseError):
            self.parser.parse('/echo "abc', flags={ParserFlag.STRICT_ESCAPING: True})

    def test_strict_escaping_backslash(self):
        closure = self.parser.parse(r"/echo a\\b", flags={ParserFlag.STRICT_ESCAPING: True})
        assert values(closure.executor_list[0]) == ["a\\b"]

    def test_replace_getvar(self):
        closure = self.parser.parse("/echo {{getvar::x}}!", flags={ParserFlag.REPLACE_GETVAR: True})
        parts = closure.executor_list[0].unnamed_argument_list
        assert parts[0].is_closure
        inner = parts[0].value.executor_list[0]
        assert (inner.name, values(inner)) == ("getvar", ["x"])
        assert parts[1].value == "!"

    def test_flag_off_again(self):
        closure = self.parser.parse(
            "/parser-flag REPLACE_GETVAR on | /parser-flag REPLACE_GETVAR off | /echo {{getvar::x}}"
        )
        assert values(closure.executor_list[0]) == ["{{getvar::x}}"]

    def test_unknown_flag(self):
        with pytest.raises(ParseError):
            self.parser.parse("/parser-flag NOPE on")

    def test_bad_flag_state(self):
        with pytest.raises(ParseError):
            self.parser.parse("/parser-flag STRICT_ESCAPING maybe")
