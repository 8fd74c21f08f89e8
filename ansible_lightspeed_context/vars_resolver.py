"""
Resolves the variable files a document pulls in through `vars_files` and
`include_vars`, and reads their top-level variables.

This is best-effort context: a file that is missing, unreadable or not a YAML
mapping is left out and never stops the completion request.
"""

import logging
import os
import shlex
from typing import Any, Callable, Iterator, List, Optional

from ansible_lightspeed_context.helpers import load_yaml_mapping
from ansible_lightspeed_context.models import AnsibleFileType, VarsFileContext

logger = logging.getLogger(__name__)

INCLUDE_VARS_MODULES = (
    "include_vars",
    "ansible.builtin.include_vars",
    "ansible.legacy.include_vars",
)
PLAY_TASK_SECTIONS = ("pre_tasks", "tasks", "post_tasks", "handlers")
BLOCK_SECTIONS = ("block", "rescue", "always")


def _is_templated(path: str) -> bool:
    return "{{" in path or "{%" in path


class VarsFileResolver:
    """Builds `VarsFileContext` mappings for a parsed document."""

    def __init__(self, loader: Callable[[str], Optional[dict]] = load_yaml_mapping):
        self.loader = loader

    def resolve_vars_files(
        self, parsed_document: List[Any], document_dir: str
    ) -> VarsFileContext:
        """Reads the files listed under `vars_files` in every play."""
        context: VarsFileContext = {}
        for play in parsed_document or []:
            if not isinstance(play, dict):
                continue
            vars_files = play.get("vars_files")
            if not isinstance(vars_files, list):
                continue
            for entry in vars_files:
                # A nested list means "the first of these files that exists".
                candidates = entry if isinstance(entry, list) else [entry]
                for candidate in candidates:
                    if self._add(context, candidate, [document_dir]):
                        break
        return context

    def resolve_include_vars(
        self,
        parsed_document: List[Any],
        document_dir: str,
        file_type: AnsibleFileType,
        role_path: Optional[str] = None,
    ) -> VarsFileContext:
        """
        Reads the files loaded by `include_vars` tasks.

        Relative paths are resolved against the document directory; for task files
        inside a role the role's `vars/` directory is searched first, as Ansible does.
        """
        search_dirs = [document_dir]
        if file_type == "tasks_in_role" and role_path:
            search_dirs.insert(0, os.path.join(role_path, "vars"))

        context: VarsFileContext = {}
        for task in self._iter_tasks(parsed_document, file_type):
            for path in self._include_vars_targets(task):
                self._add(context, path, search_dirs)
        return context

    def _iter_tasks(
        self, parsed_document: List[Any], file_type: AnsibleFileType
    ) -> Iterator[dict]:
        entries = parsed_document or []
        if file_type == "playbook":
            for play in entries:
                if not isinstance(play, dict):
                    continue
                for section in PLAY_TASK_SECTIONS:
                    yield from self._walk_tasks(play.get(section))
        else:
            yield from self._walk_tasks(entries)

    def _walk_tasks(self, tasks: Any) -> Iterator[dict]:
        if not isinstance(tasks, list):
            return
        for task in tasks:
            if not isinstance(task, dict):
                continue
            yield task
            for section in BLOCK_SECTIONS:
                yield from self._walk_tasks(task.get(section))

    def _include_vars_targets(self, task: dict) -> List[str]:
        for module in INCLUDE_VARS_MODULES:
            if module not in task:
                continue
            args = task[module]
            if isinstance(args, str):
                return [_free_form_file(args)]
            if isinstance(args, dict) and isinstance(args.get("file"), str):
                return [args["file"]]
        return []

    def _add(self, context: VarsFileContext, path: Any, search_dirs: List[str]) -> bool:
        if not isinstance(path, str) or not path or _is_templated(path):
            return False
        if path in context:
            return True

        for directory in search_dirs:
            full_path = path if os.path.isabs(path) else os.path.join(directory, path)
            variables = self.loader(os.path.normpath(full_path))
            if variables is not None:
                context[path] = variables
                return True

        logger.debug("Variables file '%s' not found or not readable", path)
        return False


def _free_form_file(args: str) -> str:
    """Extracts the file from `include_vars: file=x.yml name=y` style arguments."""
    try:
        tokens = shlex.split(args)
    except ValueError:
        return args.strip()
    for token in tokens:
        if token.startswith("file="):
            return token[len("file="):]
    if tokens and "=" not in tokens[0]:
        return tokens[0]
    return args.strip()
