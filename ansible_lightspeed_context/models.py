"""
This module defines the core data structures passed between the role cache, the
context builder, the request builder and the inline suggestion lifecycle.

The additional context is modelled as a tagged union: `AdditionalContext` carries
the classifier verdict and exactly one branch object. The wire shape, in which all
three branch keys are present and only one is populated, is produced by `to_dict`.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Literal, Optional

AnsibleFileType = Literal["playbook", "tasks_in_role", "tasks", "other"]

# A type alias for clarity: variables file path (as written) -> top-level variables.
VarsFileContext = Dict[str, Dict[str, Any]]


class UserAction(IntEnum):
    ACCEPT = 0
    IGNORE = 1


class ChangeKind(Enum):
    """Why a role directory entry must be recomputed."""

    FILE_OPEN = 0
    FILE_CLOSE = 1
    TAB_CHANGE = 2
    MODIFIED = 3
    DELETED = 4


@dataclass(frozen=True)
class RoleChangeEvent:
    """
    A "directory changed" notification consumed by the role cache.
    `workspace_root` is the cache key the role was discovered under.
    """

    workspace_root: str
    role_path: str
    change_kind: ChangeKind


@dataclass
class RoleContext:
    """
    Metadata extracted from a single role directory.

    `include_vars` is never filled by the cache; the context builder sets it on a
    copy when a task file inside the role is being completed.
    """

    name: Optional[str] = None
    tasks: List[str] = field(default_factory=list)
    role_vars: Dict[str, VarsFileContext] = field(default_factory=dict)
    include_vars: Optional[VarsFileContext] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.name is not None:
            result["name"] = self.name
        if self.tasks:
            result["tasks"] = list(self.tasks)
        if self.role_vars:
            result["roleVars"] = self.role_vars
        if self.include_vars is not None:
            result["includeVars"] = self.include_vars
        return result


@dataclass
class PlaybookContext:
    var_infiles: VarsFileContext = field(default_factory=dict)
    roles: Dict[str, RoleContext] = field(default_factory=dict)
    include_vars: VarsFileContext = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "varInfiles": self.var_infiles,
            "roles": {path: role.to_dict() for path, role in self.roles.items()},
            "includeVars": self.include_vars,
        }


@dataclass
class StandaloneTaskContext:
    include_vars: VarsFileContext = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"includeVars": self.include_vars}


# Wire key of the populated branch for each file type.
ADDITIONAL_CONTEXT_KEYS = {
    "playbook": "playbookContext",
    "tasks_in_role": "roleContext",
    "tasks": "standaloneTaskContext",
}


@dataclass(frozen=True)
class AdditionalContext:
    """The structured context attached to an entitled completion request."""

    file_type: AnsibleFileType
    branch: PlaybookContext | RoleContext | StandaloneTaskContext | None = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "playbookContext": {},
            "roleContext": {},
            "standaloneTaskContext": {},
        }
        key = ADDITIONAL_CONTEXT_KEYS.get(self.file_type)
        if key and self.branch is not None:
            result[key] = self.branch.to_dict()
        return result


@dataclass
class DocumentActivity:
    activity_id: str
    content: str


class DocumentActivityTracker:
    """Tracks one activity identifier per document URI for the engine's lifetime."""

    def __init__(self):
        self._activities: Dict[str, DocumentActivity] = {}

    def get(self, document_uri: str) -> Optional[DocumentActivity]:
        return self._activities.get(document_uri)

    def get_or_create(self, document_uri: str, content: str) -> str:
        """Returns the document's activity id, creating it on first use."""
        activity = self.get(document_uri)
        if activity is None:
            activity = DocumentActivity(activity_id=str(uuid.uuid4()), content=content)
            self._activities[document_uri] = activity
        return activity.activity_id
