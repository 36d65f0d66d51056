"""
amlang - Interactive REPL
Each line is either a command, one or more algorithm definitions, or an
expression evaluated against everything defined so far.
"""

import sys

from .interpreter import Session

BANNER = "AM Language REPL v0.1.0"
PROMPT = "repl> "

HELP = """Commands:
  :help        show this help
  :list        list defined algorithms
  :reset       clear all definitions
  exit, :q     quit"""

_QUIT = {"exit", ":q", ":quit"}


class Repl:
    def __init__(self, session=None, input_fn=input, out=None, err=None):
        self.session = session if session is not None else Session()
        self._input = input_fn
        self._out = out if out is not None else sys.stdout
        self._err = err if err is not None else sys.stderr

    def _print(self, text: str = "") -> None:
        print(text, file=self._out)

    def run(self) -> None:
        self._print(BANNER)
        self._print("Type ':help' for commands, 'exit' to quit")

        while True:
            try:
                line = self._input(PROMPT)
                text = line.strip()
                if not text:
                    continue
                if text in _QUIT:
                    break
                if not self.handle_command(text):
                    self.process_input(text)
            except KeyboardInterrupt:
                self._print("Ctrl-C pressed, exiting...")
                break
            except EOFError:
                self._print("Ctrl-D pressed, exiting...")
                break

    def handle_command(self, text: str) -> bool:
        """Run a ':' command. Returns False if `text` is not one."""
        if text == ":help":
            self._print(HELP)
        elif text == ":list":
            defs = self.session.list()
            if not defs:
                self._print("<no algorithms defined>")
            for defn in defs:
                self._print(defn.signature)
        elif text == ":reset":
            self.session.clear()
            self._print("Definitions cleared.")
        else:
            return False
        return True

    def process_input(self, text: str) -> None:
        result = self.session.execute(text)
        if result.status == 'error':
            print(result.format_error(), file=self._err)
            return
        for defn in result.definitions:
            self._print(f"Defined: {defn.signature}")
        if result.has_value:
            self._print(result.format_value())


def run_repl(session=None) -> None:
    Repl(session).run()
