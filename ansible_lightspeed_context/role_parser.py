"""
Extracts `RoleContext` metadata from a role directory on disk.
"""

import logging
import os
from typing import Callable, Dict, List, Optional

from ansible_lightspeed_context.helpers import is_yaml_file, load_yaml_mapping
from ansible_lightspeed_context.models import RoleContext, VarsFileContext

logger = logging.getLogger(__name__)

# Role sub-directories whose files declare variables.
ROLE_VARS_DIRECTORIES = ("defaults", "vars")


class RoleParser:
    """Reads the task list and the declared variables of a role."""

    def __init__(self, loader: Callable[[str], Optional[dict]] = load_yaml_mapping):
        """
        Initializes the parser.

        Args:
            loader: Function returning the top-level mapping of a YAML file or None.
        """
        self.loader = loader

    def list_roles(self, roles_dir: str) -> List[str]:
        """Returns the absolute paths of the role directories inside a `roles` directory."""
        try:
            names = sorted(os.listdir(roles_dir))
        except OSError as e:
            logger.debug("Cannot list roles directory '%s': %s", roles_dir, e)
            return []
        return [
            os.path.join(roles_dir, name)
            for name in names
            if not name.startswith(".") and os.path.isdir(os.path.join(roles_dir, name))
        ]

    def parse(self, role_path: str) -> Optional[RoleContext]:
        """
        Builds the context of one role.

        Returns:
            The role's context, or None if the directory is gone or unreadable.
        """
        if not os.path.isdir(role_path):
            return None

        try:
            tasks = self._list_yaml_files(os.path.join(role_path, "tasks"))
            role_vars: Dict[str, VarsFileContext] = {}
            for section in ROLE_VARS_DIRECTORIES:
                section_vars = self._collect_vars(os.path.join(role_path, section))
                if section_vars:
                    role_vars[section] = section_vars
        except OSError as e:
            logger.debug("Skipping unreadable role '%s': %s", role_path, e)
            return None

        return RoleContext(
            name=os.path.basename(os.path.normpath(role_path)),
            tasks=tasks,
            role_vars=role_vars,
        )

    def _list_yaml_files(self, directory: str) -> List[str]:
        if not os.path.isdir(directory):
            return []
        return sorted(
            name
            for name in os.listdir(directory)
            if is_yaml_file(name) and os.path.isfile(os.path.join(directory, name))
        )

    def _collect_vars(self, directory: str) -> VarsFileContext:
        collected: VarsFileContext = {}
        for name in self._list_yaml_files(directory):
            variables = self.loader(os.path.join(directory, name))
            if variables is not None:
                collected[name] = variables
        return collected
