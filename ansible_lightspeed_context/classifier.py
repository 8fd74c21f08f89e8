"""
Classifies Ansible documents and locates role directories on disk.
"""

import glob
import logging
import os
from fnmatch import fnmatchcase
from typing import Any, List, Optional

import yaml

from ansible_lightspeed_context.helpers import (
    ANSIBLE_FILE_TYPE_PATTERNS,
    IGNORED_DIRECTORIES,
    PLAYBOOK_KEYWORDS,
    STANDARD_ROLE_PATHS,
)
from ansible_lightspeed_context.models import AnsibleFileType

logger = logging.getLogger(__name__)


def _parse_yaml_file(file_path: str) -> Any:
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.debug("Could not parse '%s' for classification: %s", file_path, e)
        return None


def get_ansible_file_type(
    file_path: str, parsed_document: Optional[Any] = None
) -> AnsibleFileType:
    """
    Decides what kind of Ansible file is being edited.

    The content of the last document entry is checked first: a play-level key
    makes the file a playbook wherever it lives. Only then is the path matched
    against the known layout patterns.

    Args:
        file_path: Absolute path of the document.
        parsed_document: The parsed document content. Read from `file_path` when omitted.

    Returns:
        One of 'playbook', 'tasks_in_role', 'tasks' or 'other'.
    """
    if parsed_document is None:
        parsed_document = _parse_yaml_file(file_path)

    if not isinstance(parsed_document, list) or not parsed_document:
        return "other"

    last_object = parsed_document[-1]
    if not isinstance(last_object, dict):
        return "other"

    for keyword in last_object:
        if keyword in PLAYBOOK_KEYWORDS:
            return "playbook"

    normalized_path = file_path.replace(os.sep, "/")
    for pattern, file_type in ANSIBLE_FILE_TYPE_PATTERNS:
        if fnmatchcase(normalized_path, pattern):
            return file_type

    return "other"


def get_custom_role_paths(workspace_path: Optional[str]) -> List[str]:
    """Finds every `roles` directory below the workspace root."""
    if not workspace_path:
        return []

    pattern = os.path.join(workspace_path, "**", "roles")
    role_paths = []
    for path in sorted(glob.glob(pattern, recursive=True)):
        parts = os.path.normpath(path).split(os.sep)
        if IGNORED_DIRECTORIES.intersection(parts):
            continue
        if os.path.isdir(path):
            role_paths.append(os.path.abspath(path))
    return role_paths


def get_common_roles(standard_role_paths=STANDARD_ROLE_PATHS) -> List[str]:
    """Returns the standard role installation directories that exist on this machine."""
    expanded_paths = [os.path.expanduser(p) for p in standard_role_paths]
    return [p for p in expanded_paths if os.path.isdir(p)]


def get_role_path_from_path_within_role(file_path: str) -> Optional[str]:
    """
    Returns the role directory (`.../roles/<name>`) that contains `file_path`,
    or None when the file is not inside a role.
    """
    parts = os.path.normpath(file_path).split(os.sep)
    # The role name must be followed by at least the file itself.
    for index in range(len(parts) - 3, -1, -1):
        if parts[index] == "roles":
            return os.sep.join(parts[: index + 2]) or None
    return None
