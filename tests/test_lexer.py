from pathlib import Path

import pytest

from minishell.environment import Environment
from minishell.heredoc import HeredocInterrupted, HeredocStore
from minishell.lexer import (
    ShellSyntaxError,
    Token,
    TokenType,
    check_syntax,
    is_operator,
    is_whitespace,
    tokenize,
)


def feeder(lines):
    it = iter(lines)
    return lambda prompt: next(it, None)


@pytest.fixture
def env():
    environment = Environment()
    environment.set("HOME", "/home/u")
    environment.set("X", "1 2")
    environment.set("V", "val")
    environment.set("?", "42")
    return environment


def values(tokens):
    return [t.value for t in tokens]


def kinds(tokens):
    return [t.kind for t in tokens]


def test_character_classes():
    assert is_whitespace(" ") and is_whitespace("\t")
    assert not is_whitespace("a") and not is_whitespace("")
    assert is_operator("|") and is_operator("<") and is_operator(">")
    assert not is_operator("a") and not is_operator("")


def test_simple_words(env):
    tokens = tokenize("echo hello", env)
    assert values(tokens) == ["echo", "hello"]
    assert kinds(tokens) == [TokenType.WORD, TokenType.WORD]


def test_pipe_without_spaces(env):
    tokens = tokenize("ls|wc", env)
    assert values(tokens) == ["ls", "|", "wc"]
    assert kinds(tokens) == [TokenType.WORD, TokenType.OPERATOR, TokenType.WORD]


def test_append_redirection(env):
    tokens = tokenize("a >> b", env)
    assert values(tokens) == ["a", ">>", "b"]
    assert tokens[1].kind is TokenType.OPERATOR


def test_single_quotes_are_literal(env):
    assert values(tokenize("echo 'a $V b'", env)) == ["echo", "a $V b"]


def test_double_quotes_expand(env):
    assert values(tokenize('echo "$X"', env)) == ["echo", "1 2"]


def test_unquoted_expansion_splits(env):
    assert values(tokenize("echo $X", env)) == ["echo", "1", "2"]


def test_expansion_joins_with_word(env):
    assert values(tokenize("echo pre$V", env)) == ["echo", "preval"]


def test_lone_dollar_is_literal(env):
    assert values(tokenize("echo $", env)) == ["echo", "$"]


def test_status_expansion(env):
    assert values(tokenize("echo $?", env)) == ["echo", "42"]


def test_digit_parameter_is_dropped(env):
    assert values(tokenize("echo $1abc", env)) == ["echo", "abc"]


def test_dollar_before_quote_is_dropped(env):
    assert values(tokenize('echo $"x"', env)) == ["echo", "x"]


def test_empty_quotes_make_empty_word(env):
    assert values(tokenize("echo ''", env)) == ["echo", ""]


def test_unset_redirect_target_stays_empty(env):
    tokens = tokenize("> $NOPE", env)
    assert tokens == [Token(TokenType.OPERATOR, ">"), Token(TokenType.WORD, None)]


def test_tilde_expansion(env):
    assert values(tokenize("cd ~", env)) == ["cd", "/home/u"]
    assert values(tokenize("cd ~/x", env)) == ["cd", "/home/u/x"]


def test_tilde_inside_word_is_literal(env):
    assert values(tokenize("a~", env)) == ["a~"]


@pytest.mark.parametrize(
    "line",
    ["ls ||", "a <> b", "| ls", "ls |", "ls >", "> > a", "ls >>> a", "ls | | wc"],
)
def test_syntax_errors(env, line):
    with pytest.raises(ShellSyntaxError):
        tokenize(line, env)


@pytest.mark.parametrize("line", ["echo 'a", 'echo "a'])
def test_unclosed_quotes(env, line):
    with pytest.raises(ShellSyntaxError):
        tokenize(line, env)


def test_check_syntax_rejects_trailing_operator():
    with pytest.raises(ShellSyntaxError):
        check_syntax([Token(TokenType.WORD, "a"), Token(TokenType.OPERATOR, "<")])
    with pytest.raises(ShellSyntaxError):
        check_syntax([Token(TokenType.OPERATOR, "|"), Token(TokenType.WORD, "a")])


def test_quoted_pipe_is_a_word(env):
    tokens = tokenize("echo '|'", env)
    assert tokens[1] == Token(TokenType.WORD, "|")


def test_heredoc_becomes_input_file(env, tmp_path):
    store = HeredocStore(tmp_path)
    tokens = tokenize("cat << EOF", env, store, feeder(["hi $V", "EOF"]))
    assert values(tokens)[:2] == ["cat", "<"]
    assert kinds(tokens) == [TokenType.WORD, TokenType.OPERATOR, TokenType.WORD]
    assert Path(tokens[2].value).read_text() == "hi val\n"


def test_quoted_heredoc_is_literal(env, tmp_path):
    store = HeredocStore(tmp_path)
    tokens = tokenize("cat <<'E' | wc", env, store, feeder(["$V", "E"]))
    assert values(tokens)[3:] == ["|", "wc"]
    assert Path(tokens[2].value).read_text() == "$V\n"


def test_heredoc_without_delimiter(env, tmp_path):
    with pytest.raises(ShellSyntaxError):
        tokenize("cat <<", env, HeredocStore(tmp_path), feeder([]))


def test_heredoc_interrupt_propagates(env, tmp_path):
    def interrupting(prompt):
        raise KeyboardInterrupt

    with pytest.raises(HeredocInterrupted):
        tokenize("cat << EOF", env, HeredocStore(tmp_path), interrupting)
    assert list(tmp_path.iterdir()) == []