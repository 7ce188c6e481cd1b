# minishell

A small interactive command shell. It reads one line at a time and supports:

- simple commands looked up through `PATH`, or given by a path containing `/`
- pipelines joined with `|`
- redirections `<`, `>` and `>>`
- here-documents with `<<`, with `$VAR` expansion unless the delimiter is quoted
- single and double quotes, `$VAR` and `$?` expansion, and `~` for `$HOME`
- the builtins `echo` (with `-n`), `cd`, `pwd`, `export`, `unset`, `env` and `exit`

## Installing

```
pip install .
```

## Running

```
minishell
```

The prompt shows the shell's current directory in colour. Type commands as in
a POSIX shell:

```
minishell>/home/me$ echo "hello $USER" | tr a-z A-Z > out.txt
minishell>/home/me$ cat << EOF
> value: $HOME
> EOF
minishell>/home/me$ exit 3
```

Line editing and history come from Python's `readline` module where it is
available. `Ctrl-C` at the prompt drops the current line and sets `$?` to 130;
`Ctrl-D` on an empty prompt prints `exit` and leaves the shell with the last
status. The shell refuses to start with an empty environment. At startup
`SHLVL` is increased by one.

A lone `cd`, `unset`, `exit`, or `export` with arguments runs in the shell
itself and changes its state. Builtins that are part of a pipeline work on a
copy of the variables, so their changes do not last. Here-document bodies are
kept in numbered files `.tmp1`, `.tmp2`, ... in the system temporary directory
(or the directory given to `Shell`), and are removed after each command line.

## Using it from Python

```python
from minishell.shell import Shell

shell = Shell(environ={"PATH": "/usr/bin:/bin", "HOME": "/tmp"}, cwd="/tmp",
              heredoc_dir="/tmp")
status = shell.run_line("echo hi | wc -c")
```

`Shell.run_line` runs one input line and returns its exit status (2 for a
syntax error, 130 for an interrupted here-document); `exit` raises
`minishell.builtins.ShellExit`. `Shell.loop` keeps reading lines from a
callable that takes a prompt, until it returns `None` or `exit` is run, and
returns the exit status.

The building blocks are:

- `minishell.environment`: `Environment`, the ordered variable store, and `c_atoi`
- `minishell.lexer`: `tokenize`, `check_syntax`, `Token`, `TokenType`, `ShellSyntaxError`
- `minishell.heredoc`: `HeredocStore`, `read_delimiter`, `expand_line`, `write_heredoc`, `HeredocInterrupted`
- `minishell.parser`: `build_pipeline`, `Command`, `Redirection`, `RedirectionType`
- `minishell.builtins`: `echo`, `cd`, `pwd`, `print_env`, `export`, `unset`, `exit_builtin`, `run_builtin`
- `minishell.executor`: `execute`, `resolve_command`, `open_redirections`, `RedirectionError`

## What it does not do

The shell is interactive only: it does not run script files or take commands
from its arguments. There are no command lists (`;`, `&&`, `||`), no
background jobs or job control, no subshells or command substitution, no
wildcard expansion and no backslash escapes.

## Tests

```
pip install .[test]
pytest
```