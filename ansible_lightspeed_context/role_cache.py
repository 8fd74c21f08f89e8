"""
The per-workspace cache of role metadata.

Roles are discovered lazily the first time a workspace root is referenced, which
walks the whole workspace. Afterwards entries are only touched one role at a time:
change notifications are posted to a thread-safe queue (watcher threads and editor
events never mutate the cache directly) and the queue is drained by the cache
itself before every read.
"""

import logging
import os
import queue
from typing import Callable, Dict, Iterable, Optional

from ansible_lightspeed_context.classifier import get_common_roles, get_custom_role_paths
from ansible_lightspeed_context.helpers import STANDARD_ROLE_PATHS, is_within
from ansible_lightspeed_context.models import (
    ChangeKind,
    RoleChangeEvent,
    RoleContext,
)
from ansible_lightspeed_context.role_parser import RoleParser

logger = logging.getLogger(__name__)

COMMON_ROLES_KEY = "common"

# A type alias for clarity: absolute role path -> role metadata.
RolesEntry = Dict[str, RoleContext]


class RoleCache:
    """Caches `RoleContext` objects keyed by workspace root and role path."""

    def __init__(
        self,
        role_parser: Optional[RoleParser] = None,
        standard_role_paths: Iterable[str] = STANDARD_ROLE_PATHS,
        on_roles_dir_discovered: Optional[Callable[[str, str], None]] = None,
    ):
        """
        Initializes an empty cache.

        Args:
            role_parser: Extracts metadata from a role directory.
            standard_role_paths: Installation paths searched for common roles.
            on_roles_dir_discovered: Called with `(roles_dir, workspace_root)` for
                every `roles` directory found, so a watcher can be registered.
        """
        self.role_parser = role_parser or RoleParser()
        self.standard_role_paths = tuple(standard_role_paths)
        self.on_roles_dir_discovered = on_roles_dir_discovered
        self._entries: Dict[str, RolesEntry] = {}
        self._roles_dirs: Dict[str, str] = {}
        self._events: "queue.SimpleQueue[RoleChangeEvent]" = queue.SimpleQueue()

    def __contains__(self, workspace_root: str) -> bool:
        return workspace_root in self._entries

    @property
    def roles_dirs(self) -> Dict[str, str]:
        """The discovered `roles` directories mapped to their workspace root."""
        return dict(self._roles_dirs)

    # --- Reads ---------------------------------------------------------------

    def get_or_populate(self, workspace_root: str) -> RolesEntry:
        """Returns the roles of a workspace, discovering them on first reference."""
        self.process_pending_events()
        if workspace_root not in self._entries:
            self._entries[workspace_root] = self._populate(
                workspace_root, get_custom_role_paths(workspace_root)
            )
        return self._entries[workspace_root]

    def common_roles(self) -> RolesEntry:
        """Returns the roles installed outside any workspace, resolving them once."""
        self.process_pending_events()
        if COMMON_ROLES_KEY not in self._entries:
            self._entries[COMMON_ROLES_KEY] = self._populate(
                COMMON_ROLES_KEY, get_common_roles(self.standard_role_paths)
            )
        return self._entries[COMMON_ROLES_KEY]

    def lookup_role(self, workspace_root: str, role_path: str) -> Optional[RoleContext]:
        return self.get_or_populate(workspace_root).get(role_path)

    def visible_roles(
        self, workspace_root: Optional[str], document_dir: str
    ) -> RolesEntry:
        """
        Builds the set of roles a playbook in `document_dir` can refer to.

        Workspace roles come first, keyed by their path relative to the document.
        Common roles are added afterwards under their absolute path and never
        replace a workspace entry.
        """
        visible: RolesEntry = {}
        workspace_roles: RolesEntry = {}
        if workspace_root:
            workspace_roles = self.get_or_populate(workspace_root)
            for abs_role_path, role_context in workspace_roles.items():
                relative_path = os.path.relpath(abs_role_path, document_dir)
                visible[relative_path] = role_context

        for abs_role_path, role_context in self.common_roles().items():
            if abs_role_path in workspace_roles or abs_role_path in visible:
                continue
            visible[abs_role_path] = role_context
        return visible

    # --- Invalidation --------------------------------------------------------

    def post(self, event: RoleChangeEvent):
        """Queues a change notification. Safe to call from any thread."""
        self._events.put(event)

    def post_for_path(self, file_path: str, change_kind: ChangeKind) -> bool:
        """
        Queues a change notification for the role containing `file_path`.

        Returns:
            True if the file lies inside a watched `roles` directory.
        """
        # Innermost `roles` directory first, for roles nested inside other roles.
        roles_dirs = sorted(self._roles_dirs.items(), key=lambda item: len(item[0]), reverse=True)
        for roles_dir, workspace_root in roles_dirs:
            role_path = role_path_in_roles_dir(roles_dir, file_path)
            if role_path:
                self.post(RoleChangeEvent(workspace_root, role_path, change_kind))
                return True
        return False

    def process_pending_events(self) -> int:
        """Applies all queued notifications and returns how many were handled."""
        handled = 0
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return handled
            self.invalidate(event.workspace_root, event.role_path)
            handled += 1

    def invalidate(self, workspace_root: str, role_path: str):
        """
        Recomputes the entry of a single role; all other entries are untouched.
        The entry is dropped when the role directory no longer exists.
        """
        roles = self._entries.get(workspace_root)
        if roles is None:
            # Not populated yet: the first read will discover the role anyway.
            return

        role_context = self.role_parser.parse(role_path)
        if role_context is None:
            if roles.pop(role_path, None) is not None:
                logger.debug("Removed role '%s' from the cache", role_path)
            return

        roles[role_path] = role_context
        logger.debug("Refreshed role '%s' in the cache", role_path)

    # --- Population ----------------------------------------------------------

    def _populate(self, cache_key: str, roles_dirs: Iterable[str]) -> RolesEntry:
        roles: RolesEntry = {}
        for roles_dir in roles_dirs:
            self._roles_dirs[roles_dir] = cache_key
            if self.on_roles_dir_discovered:
                self.on_roles_dir_discovered(roles_dir, cache_key)
            for role_path in self.role_parser.list_roles(roles_dir):
                role_context = self.role_parser.parse(role_path)
                if role_context is not None:
                    roles[role_path] = role_context
        logger.info("Cached %d roles for '%s'", len(roles), cache_key)
        return roles


def role_path_in_roles_dir(roles_dir: str, file_path: str) -> Optional[str]:
    """Returns `roles_dir/<role>` when `file_path` lies inside that role."""
    if not is_within(file_path, roles_dir):
        return None
    relative = os.path.relpath(os.path.abspath(file_path), os.path.abspath(roles_dir))
    if relative == os.curdir:
        return None
    role_name = relative.split(os.sep)[0]
    return os.path.join(roles_dir, role_name)
