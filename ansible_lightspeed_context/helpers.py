"""Shared helper functions and constants."""

import hashlib
import logging
import os
import textwrap
from typing import Any, Dict, Optional
from urllib.parse import unquote, urlparse

import yaml

logger = logging.getLogger(__name__)

LIGHTSPEED_API_VERSION = "v0"
LIGHTSPEED_SUGGESTION_COMPLETION_URL = f"{LIGHTSPEED_API_VERSION}/ai/completions/"
LIGHTSPEED_SUGGESTION_FEEDBACK_URL = f"{LIGHTSPEED_API_VERSION}/ai/feedback/"

# Editor commands the engine asks its editor collaborator to run.
LIGHTSPEED_FETCH_TRAINING_MATCHES = "ansible.lightspeed.fetchTrainingMatches"
EDITOR_INLINE_SUGGEST_TRIGGER = "editor.action.inlineSuggest.trigger"
EDITOR_INLINE_SUGGEST_COMMIT = "editor.action.inlineSuggest.commit"
EDITOR_INLINE_SUGGEST_HIDE = "editor.action.inlineSuggest.hide"

ANSIBLE_LANGUAGE_ID = "ansible"

# Keys that only ever appear at play level. Generic keywords shared with
# tasks (name, vars, become, ...) are deliberately absent.
PLAYBOOK_KEYWORDS = frozenset(
    {
        "hosts",
        "import_playbook",
        "ansible.builtin.import_playbook",
        "roles",
        "tasks",
        "pre_tasks",
        "post_tasks",
        "handlers",
        "gather_facts",
        "gather_subset",
        "gather_timeout",
        "fact_path",
        "vars_files",
        "vars_prompt",
        "strategy",
        "serial",
        "max_fail_percentage",
        "force_handlers",
        "order",
    }
)

# Path patterns in priority order; the first match wins. fnmatch's `*`
# also matches path separators, so `*/tasks/*.yml` covers nested task dirs.
ANSIBLE_FILE_TYPE_PATTERNS = (
    ("*/roles/*/tasks/*.yml", "tasks_in_role"),
    ("*/roles/*/tasks/*.yaml", "tasks_in_role"),
    ("*/tasks/*.yml", "tasks"),
    ("*/tasks/*.yaml", "tasks"),
    ("*/playbooks/*.yml", "playbook"),
    ("*/playbooks/*.yaml", "playbook"),
)

STANDARD_ROLE_PATHS = (
    "~/.ansible/roles",
    "/usr/share/ansible/roles",
    "/etc/ansible/roles",
)

IGNORED_DIRECTORIES = frozenset({".git", "node_modules"})

YAML_EXTENSIONS = (".yml", ".yaml")


def hash_document_uri(document_uri: str) -> str:
    """Returns the opaque document identity sent instead of the raw URI."""
    digest = hashlib.sha256(document_uri.encode("utf-8")).hexdigest()
    return f"document-{digest}"


def uri_to_path(document_uri: str) -> str:
    """Converts a `file://` URI (or a plain path) into a filesystem path."""
    return unquote(urlparse(document_uri).path)


def is_yaml_file(file_name: str) -> bool:
    return file_name.endswith(YAML_EXTENSIONS)


def load_yaml_mapping(file_path: str) -> Optional[Dict[str, Any]]:
    """
    Reads a YAML file and returns its top-level mapping.

    Returns None when the file is missing, unreadable, not valid YAML or does not
    hold a mapping. Callers treat these files as absent context.
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.debug("Skipping variables file '%s': %s", file_path, e)
        return None

    if not isinstance(data, dict):
        logger.debug("Skipping variables file '%s': not a mapping", file_path)
        return None
    return data


def adjust_inline_suggestion_indent(suggestion: str, column: int) -> str:
    """
    Re-indents a prediction for insertion at `column`.

    The first line is inserted at the cursor, which already sits at the right
    indentation, so only the following lines receive the column offset.
    """
    lines = textwrap.dedent(suggestion).split("\n")
    padding = " " * column
    adjusted = [lines[0]]
    for line in lines[1:]:
        adjusted.append(f"{padding}{line}" if line.strip() else line)
    return "\n".join(adjusted)


def is_within(path: str, directory: str) -> bool:
    """Checks whether `path` is `directory` itself or lies below it."""
    path = os.path.abspath(path)
    directory = os.path.abspath(directory)
    return path == directory or path.startswith(directory.rstrip(os.sep) + os.sep)
