"""
Builds the `AdditionalContext` attached to entitled completion requests.

The builder combines the role cache and the variable file resolver, branching on
the classifier verdict so that exactly one branch of the result is populated.
"""

import dataclasses
import logging
import os
from typing import Any, Iterable, List, Optional

from ansible_lightspeed_context.classifier import get_role_path_from_path_within_role
from ansible_lightspeed_context.helpers import is_within
from ansible_lightspeed_context.models import (
    AdditionalContext,
    AnsibleFileType,
    PlaybookContext,
    RoleContext,
    StandaloneTaskContext,
)
from ansible_lightspeed_context.role_cache import RoleCache
from ansible_lightspeed_context.vars_resolver import VarsFileResolver

logger = logging.getLogger(__name__)


class AdditionalContextBuilder:
    def __init__(
        self,
        role_cache: RoleCache,
        vars_resolver: VarsFileResolver,
        workspace_folders: Iterable[str] = (),
    ):
        self.role_cache = role_cache
        self.vars_resolver = vars_resolver
        self.workspace_folders = [os.path.abspath(f) for f in workspace_folders]

    def workspace_root_for(self, document_file_path: str) -> Optional[str]:
        """
        Returns the innermost workspace folder containing the document, falling back
        to the first workspace folder for files opened from elsewhere.
        """
        containing = [
            folder
            for folder in self.workspace_folders
            if is_within(document_file_path, folder)
        ]
        if containing:
            return max(containing, key=len)
        return self.workspace_folders[0] if self.workspace_folders else None

    def assemble(
        self,
        parsed_document: List[Any],
        document_dir_path: str,
        document_file_path: str,
        file_type: AnsibleFileType,
    ) -> AdditionalContext:
        """
        Builds the additional context for one document.

        Args:
            parsed_document: The plays or tasks above the cursor.
            document_dir_path: Directory of the document; relative paths resolve against it.
            document_file_path: Absolute path of the document.
            file_type: The classifier verdict for the document.

        Returns:
            An `AdditionalContext` whose only branch matches `file_type`.
        """
        workspace_root = self.workspace_root_for(document_file_path)
        logger.debug(
            "Assembling %s context for '%s' (workspace: %s)",
            file_type,
            document_file_path,
            workspace_root,
        )

        if file_type == "playbook":
            return AdditionalContext(
                file_type=file_type,
                branch=PlaybookContext(
                    var_infiles=self.vars_resolver.resolve_vars_files(
                        parsed_document, document_dir_path
                    ),
                    roles=self.role_cache.visible_roles(
                        workspace_root, document_dir_path
                    ),
                    include_vars=self.vars_resolver.resolve_include_vars(
                        parsed_document, document_dir_path, file_type
                    ),
                ),
            )

        if file_type == "tasks_in_role":
            role_path = get_role_path_from_path_within_role(document_file_path)
            role_context = None
            if workspace_root and role_path:
                role_context = self.role_cache.lookup_role(workspace_root, role_path)
            # Copy so the cached entry never carries per-document include_vars.
            role_context = (
                dataclasses.replace(role_context) if role_context else RoleContext()
            )
            role_context.include_vars = self.vars_resolver.resolve_include_vars(
                parsed_document, document_dir_path, file_type, role_path=role_path
            )
            return AdditionalContext(file_type=file_type, branch=role_context)

        if file_type == "tasks":
            return AdditionalContext(
                file_type=file_type,
                branch=StandaloneTaskContext(
                    include_vars=self.vars_resolver.resolve_include_vars(
                        parsed_document, document_dir_path, file_type
                    )
                ),
            )

        return AdditionalContext(file_type=file_type)
