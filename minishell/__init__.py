"""An interactive command shell with pipelines, redirections, here-documents and builtins."""

__version__ = "0.1.0"
__all__ = ["builtins", "environment", "executor", "heredoc", "lexer", "parser", "shell"]