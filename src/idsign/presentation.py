"""Presentation layer boundary.

The coordinator reads the document text from a Presenter and hands it the
final outcome. Everything visual lives behind this interface.
"""

import sys
from abc import ABC, abstractmethod
from typing import Optional, TextIO


class Presenter(ABC):
    """What the coordinator needs from the user interface."""

    @abstractmethod
    def get_document_text(self) -> str:
        """Text the user wants to sign."""
        raise NotImplementedError()

    @abstractmethod
    def report_outcome(self, success: bool, message: str):
        """Show the terminal outcome of a signing attempt."""
        raise NotImplementedError()


class ConsolePresenter(Presenter):
    """Presenter for the command line."""

    def __init__(self, document_text: str, out: Optional[TextIO] = None, err: Optional[TextIO] = None):
        self.document_text = document_text
        self.out = out
        self.err = err
        self.success: Optional[bool] = None

    def get_document_text(self) -> str:
        return self.document_text

    def report_outcome(self, success: bool, message: str):
        self.success = success
        stream = (self.out or sys.stdout) if success else (self.err or sys.stderr)
        print(message, file=stream)
