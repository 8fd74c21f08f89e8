"""
Turns filesystem events below `roles` directories into role cache invalidations.

watchdog delivers events on its observer thread; the handler only posts
`RoleChangeEvent`s to the cache's queue.
"""

import logging
import os
from typing import Callable, Dict, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ansible_lightspeed_context.helpers import IGNORED_DIRECTORIES
from ansible_lightspeed_context.models import ChangeKind, RoleChangeEvent
from ansible_lightspeed_context.role_cache import role_path_in_roles_dir

logger = logging.getLogger(__name__)

# watchdog event types that change what a role looks like.
RELEVANT_EVENT_TYPES = frozenset({"created", "modified", "deleted", "moved"})


class RolesDirectoryEventHandler(FileSystemEventHandler):
    def __init__(
        self,
        roles_dir: str,
        workspace_root: str,
        post: Callable[[RoleChangeEvent], None],
    ):
        super().__init__()
        self.roles_dir = roles_dir
        self.workspace_root = workspace_root
        self.post = post

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in RELEVANT_EVENT_TYPES:
            return

        paths = [event.src_path]
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.append(dest_path)

        for path in paths:
            if isinstance(path, bytes):
                path = path.decode()
            if IGNORED_DIRECTORIES.intersection(path.split(os.sep)):
                continue
            role_path = role_path_in_roles_dir(self.roles_dir, path)
            if role_path is None:
                continue
            change_kind = (
                ChangeKind.DELETED
                if event.event_type == "deleted" and path == role_path
                else ChangeKind.MODIFIED
            )
            self.post(RoleChangeEvent(self.workspace_root, role_path, change_kind))


class RolesDirectoryWatcher:
    """Keeps one recursive watch per discovered `roles` directory."""

    def __init__(
        self,
        post: Callable[[RoleChangeEvent], None],
        observer_factory: Callable[[], object] = Observer,
    ):
        self.post = post
        self.observer_factory = observer_factory
        self._observer: Optional[object] = None
        self._watches: Dict[str, object] = {}

    @property
    def watched_dirs(self):
        return list(self._watches)

    def watch(self, roles_dir: str, workspace_root: str):
        if roles_dir in self._watches:
            return
        if self._observer is None:
            self._observer = self.observer_factory()
            self._observer.start()

        handler = RolesDirectoryEventHandler(roles_dir, workspace_root, self.post)
        try:
            self._watches[roles_dir] = self._observer.schedule(
                handler, roles_dir, recursive=True
            )
        except OSError as e:
            logger.warning("Could not watch roles directory '%s': %s", roles_dir, e)
            return
        logger.debug("Watching roles directory '%s'", roles_dir)

    def stop(self):
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
        self._watches.clear()
