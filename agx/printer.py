import contextlib, typing

import rich, rich.console
from rich.markup import escape


class AGXPrinter:
    """
    Console shared by every agx command.

    Text goes through rich markup and is prefixed by the current indentation
    stack, so nested sections of a dump line up without callers tracking
    their depth.
    """

    def __init__(self):
        self.stack   = []
        self.verbose = False
        self.raw     = rich.console.Console()

    def reset(self):
        self.stack = []

    def indent(self, prefix: str = "  "):
        self.stack.append(prefix)

    def unindent(self):
        if self.stack:
            self.stack.pop()

    @contextlib.contextmanager
    def section(self, title: str, prefix: str = "  "):
        """ Prints title, then indents everything printed inside the block. """
        self.print(title)
        self.indent(prefix)
        try:
            yield
        finally:
            self.unindent()

    def print(self, msg: typing.Any = "", **kwargs):
        pad = ''.join(self.stack)
        self.raw.print('\n'.join(f"{pad}{line}" for line in str(msg).split('\n')),
                       soft_wrap=True, **kwargs)

    def debug(self, msg: typing.Any):
        if self.verbose:
            self.print(f"[dim]{msg}[/dim]")

    def error(self, msg: typing.Any):
        self.reset()
        self.print(f"[bold red]Error[/bold red]: {escape(str(msg))}")

    def print_exception(self):
        self.reset()
        self.raw.print_exception()


cons = AGXPrinter()
