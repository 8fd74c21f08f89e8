from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class TriggerKind(IntEnum):
    """How the editor asked for inline completions."""

    INVOKE = 0  # explicitly requested by the user
    AUTOMATIC = 1  # triggered while typing


@dataclass(frozen=True)
class Position:
    line: int  # 0-indexed
    character: int  # 0-indexed


@dataclass(frozen=True)
class InlineCompletionItem:
    insert_text: str


@dataclass
class CancellationToken:
    is_cancellation_requested: bool = False

    def cancel(self):
        self.is_cancellation_requested = True


@dataclass
class TextDocument:
    """A snapshot of an open editor document."""

    uri: str
    text: str
    language_id: str = "ansible"

    @property
    def lines(self) -> list[str]:
        return self.text.split("\n")

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def line_at(self, line: int) -> str:
        lines = self.lines
        if 0 <= line < len(lines):
            return lines[line].rstrip("\r")
        return ""

    def get_text(self, end: Optional[Position] = None) -> str:
        """Returns the text from the start of the document up to `end`."""
        if end is None:
            return self.text
        lines = self.lines
        head = lines[: end.line]
        if end.line < len(lines):
            head.append(lines[end.line][: end.character])
        return "\n".join(head)


class BaseEditor(ABC):
    """
    The editor surface the suggestion lifecycle drives. Implementations adapt a
    concrete editor (or a language server client) to these few calls.
    """

    @property
    @abstractmethod
    def active_document(self) -> Optional[TextDocument]: ...

    @abstractmethod
    def show_error_message(self, message: str) -> None: ...

    @abstractmethod
    def show_information_message(self, message: str) -> None: ...

    @abstractmethod
    def execute_command(self, command: str) -> None:
        """Runs an editor command such as hiding the displayed inline suggestion."""
        ...
