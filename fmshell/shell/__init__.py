"""Interactive ``fm>`` shell."""

from fmshell.shell.repl import PROMPT, Shell, tokenize

__all__ = ["PROMPT", "Shell", "tokenize"]
