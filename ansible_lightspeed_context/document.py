"""
Turns the editor document into a completion prompt: checks the cursor position,
parses the text above the cursor and decides whether a request is worth sending.
"""

import re
from dataclasses import dataclass
from typing import Any, List, Optional

import yaml

from ansible_lightspeed_context.errors import InvalidAnsibleDocumentError
from ansible_lightspeed_context.interfaces.editor import Position, TextDocument

TASK_REGEX_EP = re.compile(
    r"^(?<![\s-])(?P<blank>\s*)(?P<list>- \s*name\s*:\s*)(?P<description>\S.*)(?P<end>$)"
)
LEADING_SPACES = re.compile(r"^ +")

PLAY_TASK_SECTIONS = ("pre_tasks", "tasks", "post_tasks", "handlers")
BLOCK_SECTIONS = ("block", "rescue", "always")

POSITION_HINT = (
    "Cursor should be positioned on the line after the task name with the same "
    "indent as that of the task name line to trigger an inline suggestion."
)


@dataclass(frozen=True)
class TriggerPositionCheck:
    """Outcome of checking whether the cursor sits where a task body starts."""

    task_matched: bool
    current_line_blank: bool
    task_column: int
    cursor_column: int

    @property
    def ok(self) -> bool:
        return (
            self.task_matched
            and self.current_line_blank
            and self.task_column == self.cursor_column
        )

    def hint(self) -> Optional[str]:
        """The message shown when the user explicitly triggered at a wrong position."""
        if self.ok:
            return None
        if not self.task_matched or not self.current_line_blank:
            return POSITION_HINT
        return f"Cursor must be in column {self.task_column} to trigger an inline suggestion."


def check_trigger_position(
    document: TextDocument, position: Position
) -> TriggerPositionCheck:
    """
    Checks that the cursor is on a blank line right below a `- name: ...` line,
    indented by as many spaces as that line.
    """
    task_line = document.line_at(position.line - 1) if position.line > 0 else ""
    current_line = document.line_at(position.line)

    match = TASK_REGEX_EP.match(task_line)
    task_spaces = LEADING_SPACES.match(task_line)
    task_column = len(task_spaces.group(0)) if task_spaces else 0

    before_cursor = current_line[: position.character]
    spaces = LEADING_SPACES.match(before_cursor)
    cursor_column = len(spaces.group(0)) if spaces else 0

    return TriggerPositionCheck(
        task_matched=match is not None,
        current_line_blank=not current_line.strip(),
        task_column=task_column,
        cursor_column=cursor_column,
    )


def parse_ansible_document(content: str) -> Optional[List[Any]]:
    """
    Parses the prompt text.

    Returns:
        The list of plays or tasks, or None when there is nothing to complete.

    Raises:
        InvalidAnsibleDocumentError: If the text is not YAML or is a mapping.
    """
    try:
        parsed = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise InvalidAnsibleDocumentError(
            f"Ansible Lightspeed expects valid YAML syntax to provide inline suggestions. Error: {e}"
        ) from e

    if not parsed:
        return None
    if isinstance(parsed, dict):
        raise InvalidAnsibleDocumentError(
            "Ansible Lightspeed expects valid Ansible syntax. For playbook files it "
            "should be a list of plays and for tasks files it should be list of tasks."
        )
    if not isinstance(parsed, list):
        return None
    return parsed


def _last_task(entries: List[Any]) -> Any:
    """Descends into the last play or block to find the task being written."""
    last = entries[-1]
    while isinstance(last, dict):
        for section in PLAY_TASK_SECTIONS + BLOCK_SECTIONS:
            children = last.get(section)
            if section in last and isinstance(children, list) and children:
                if list(last)[-1] == section:
                    last = children[-1]
                    break
        else:
            return last
    return last


def should_request_inline_suggestions(parsed_document: List[Any]) -> bool:
    """A request is only useful when the last task has a name and nothing else."""
    if not parsed_document:
        return False
    task = _last_task(parsed_document)
    return isinstance(task, dict) and list(task) == ["name"]
