import os
from unittest import mock

import pytest

from minishell.builtins import ShellExit
from minishell.shell import Shell, main


@pytest.fixture
def shell(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    hd = tmp_path / "hd"
    hd.mkdir()
    environ = {
        "PATH": os.environ.get("PATH", "/usr/bin:/bin"),
        "HOME": str(tmp_path),
        "FOO": "bar",
    }
    return Shell(environ, str(tmp_path), str(hd))


def _reader(lines):
    items = iter(lines)
    return lambda prompt: next(items, None)


def test_prompt_format(shell, tmp_path):
    expected = (
        "\033[1;32mminishell>\033[0m\033[1;33m"
        + str(tmp_path)
        + "\033[0m\033[34m$\033[0m"
    )
    assert shell.prompt() == expected


def test_empty_line_keeps_status(shell):
    assert shell.run_line("") == 0
    assert shell.run_line("| oops") == 2
    assert shell.run_line("") == 2


def test_syntax_error_sets_status(shell, capsys):
    assert shell.run_line("echo a ||") == 2
    assert shell.env.get("?") == "2"
    assert "syntax error" in capsys.readouterr().err


def test_unclosed_quote(shell, capsys):
    assert shell.run_line("echo 'abc") == 2
    assert "no quote" in capsys.readouterr().err


def test_status_expands(shell, tmp_path):
    shell.run_line("| x")
    assert shell.run_line("echo $? > out") == 0
    assert (tmp_path / "out").read_text() == "2\n"


def test_variable_expansion(shell, tmp_path):
    assert shell.run_line('echo "$FOO" $FOO > out') == 0
    assert (tmp_path / "out").read_text() == "bar bar\n"


def test_unset_changes_shell(shell):
    shell.run_line("unset FOO")
    assert "FOO" not in shell.env


def test_export_then_env(shell, tmp_path):
    assert shell.run_line("export GREETING=hello") == 0
    assert shell.env.get("GREETING") == "hello"
    assert shell.run_line("env > out") == 0
    assert "GREETING=hello\n" in (tmp_path / "out").read_text()


def test_cd_updates_prompt(shell, tmp_path):
    sub = tmp_path / "sub"
    sub.mkdir()
    assert shell.run_line("cd sub") == 0
    assert str(sub) in shell.prompt()
    assert shell.env.get("PWD") == str(sub)


def test_exit_raises(shell):
    with pytest.raises(ShellExit) as info:
        shell.run_line("exit 7")
    assert info.value.status == 7


def test_loop_end_of_input(shell, capsys):
    assert shell.loop(_reader(["echo hi"])) == 0
    out = capsys.readouterr().out
    assert out.startswith("hi\n")
    assert out.endswith("\nexit\n")


def test_loop_returns_last_status(shell):
    assert shell.loop(_reader(["|"])) == 2


def test_loop_exit_status(shell):
    assert shell.loop(_reader(["exit 3", "echo never"])) == 3


def test_loop_heredoc(shell, tmp_path):
    lines = ["cat << EOF > out", "hello $FOO", "EOF"]
    assert shell.loop(_reader(lines)) == 0
    assert (tmp_path / "out").read_text() == "hello bar\n"
    assert not (tmp_path / "hd" / ".tmp1").exists()


def test_loop_quoted_heredoc_not_expanded(shell, tmp_path):
    lines = ["cat << 'EOF' > out", "hello $FOO", "EOF"]
    assert shell.loop(_reader(lines)) == 0
    assert (tmp_path / "out").read_text() == "hello $FOO\n"


def test_loop_interrupt_at_prompt(shell, capsys):
    calls = iter([KeyboardInterrupt(), "echo $? > out", None])

    def read(prompt):
        item = next(calls)
        if isinstance(item, BaseException):
            raise item
        return item

    shell.loop(read)
    assert shell.status == 0
    assert capsys.readouterr().out.startswith("\n")


def test_main_without_environment(capsys):
    with mock.patch.dict(os.environ, {}, clear=True):
        assert main() == 18
    assert capsys.readouterr().err == "error: env unset\n"