"""
This is the main entry point of the package for editor integrations.

A `LightspeedEngine` is created once per editor session and owns all state
shared between requests: the role cache, the document activity tracker and the
inline suggestion session. Nothing is kept in module-level globals.
"""

import logging
from typing import Iterable, Optional

from ansible_lightspeed_context.context_builder import AdditionalContextBuilder
from ansible_lightspeed_context.interfaces.api import BaseAuthProvider, BaseLightspeedApi
from ansible_lightspeed_context.interfaces.config import LightspeedSettings
from ansible_lightspeed_context.interfaces.editor import BaseEditor
from ansible_lightspeed_context.models import ChangeKind, DocumentActivityTracker
from ansible_lightspeed_context.request_builder import CompletionRequestBuilder
from ansible_lightspeed_context.role_cache import RoleCache
from ansible_lightspeed_context.suggestions import InlineSuggestionProvider
from ansible_lightspeed_context.vars_resolver import VarsFileResolver
from ansible_lightspeed_context.watcher import RolesDirectoryWatcher

logger = logging.getLogger(__name__)


class LightspeedEngine:
    """Wires the context assembly components and the suggestion lifecycle together."""

    def __init__(
        self,
        settings: LightspeedSettings,
        editor: BaseEditor,
        api: BaseLightspeedApi,
        auth: Optional[BaseAuthProvider] = None,
        workspace_folders: Iterable[str] = (),
        role_cache: Optional[RoleCache] = None,
        watcher: Optional[RolesDirectoryWatcher] = None,
        watch_roles: bool = True,
    ):
        """
        Initializes the engine.

        Args:
            settings: The Lightspeed settings.
            editor: The editor surface used for messages and commands.
            api: Client for the completion and feedback endpoints.
            auth: Tells whether the user is entitled to additional context.
            workspace_folders: Root folders of the open workspace.
            role_cache: Cache to use instead of a fresh one.
            watcher: Watcher to register discovered `roles` directories with.
            watch_roles: Create a filesystem watcher when none is given.
        """
        self.settings = settings
        self.activity_tracker = DocumentActivityTracker()
        self.role_cache = role_cache or RoleCache()
        self.role_cache.on_roles_dir_discovered = self._on_roles_dir_discovered

        self.watcher = watcher
        if self.watcher is None and watch_roles:
            self.watcher = RolesDirectoryWatcher(self.role_cache.post)

        self.vars_resolver = VarsFileResolver()
        self.context_builder = AdditionalContextBuilder(
            self.role_cache, self.vars_resolver, workspace_folders
        )
        self.request_builder = CompletionRequestBuilder(settings, self.context_builder)
        self.inline_suggestions = InlineSuggestionProvider(
            settings=settings,
            editor=editor,
            api=api,
            request_builder=self.request_builder,
            activity_tracker=self.activity_tracker,
            auth=auth,
        )

    def _on_roles_dir_discovered(self, roles_dir: str, workspace_root: str):
        if self.watcher is not None:
            self.watcher.watch(roles_dir, workspace_root)

    def handle_content_event(self, file_path: str, change_kind: ChangeKind) -> bool:
        """
        Reports an editor event (file open, file close, tab change) so the role
        owning `file_path` is refreshed before the next context assembly.

        Returns:
            True if the file belongs to a cached role.
        """
        queued = self.role_cache.post_for_path(file_path, change_kind)
        if queued:
            logger.debug("Queued %s refresh for '%s'", change_kind.name, file_path)
        return queued

    def reset_suggestion_state(self):
        """Called on document or language changes and when the settings change."""
        self.inline_suggestions.reset()

    def close(self):
        if self.watcher is not None:
            self.watcher.stop()
