"""Tests for AdditionalContextBuilder."""

import os

import pytest

from ansible_lightspeed_context.context_builder import AdditionalContextBuilder
from ansible_lightspeed_context.role_cache import RoleCache
from ansible_lightspeed_context.vars_resolver import VarsFileResolver


@pytest.fixture
def builder(ansible_workspace):
    return AdditionalContextBuilder(
        RoleCache(standard_role_paths=()),
        VarsFileResolver(),
        workspace_folders=[str(ansible_workspace)],
    )


def populated_branches(context_dict):
    return [key for key, value in context_dict.items() if value]


class TestAssemble:
    """Test suite for AdditionalContextBuilder.assemble."""

    def test_playbook_context(self, builder, ansible_workspace):
        root = str(ansible_workspace)
        document = [
            {
                "hosts": "all",
                "vars_files": ["vars/common.yml"],
                "tasks": [{"name": "Install package"}],
            }
        ]

        context = builder.assemble(
            document, root, os.path.join(root, "site.yml"), "playbook"
        ).to_dict()

        assert populated_branches(context) == ["playbookContext"]
        playbook = context["playbookContext"]
        assert playbook["varInfiles"] == {"vars/common.yml": {"env": "prod", "region": "eu"}}
        assert playbook["roles"][os.path.join("roles", "web")] == {
            "name": "web",
            "tasks": ["main.yml"],
            "roleVars": {
                "defaults": {"main.yml": {"http_port": 80}},
                "vars": {"main.yml": {"web_user": "www"}},
            },
        }
        assert playbook["includeVars"] == {}
        assert context["roleContext"] == {}
        assert context["standaloneTaskContext"] == {}

    def test_role_context(self, builder, ansible_workspace):
        role_dir = ansible_workspace / "roles" / "web"
        document = [{"include_vars": "main.yml"}, {"name": "Install package"}]

        context = builder.assemble(
            document,
            str(role_dir / "tasks"),
            str(role_dir / "tasks" / "main.yml"),
            "tasks_in_role",
        ).to_dict()

        assert populated_branches(context) == ["roleContext"]
        assert context["roleContext"]["name"] == "web"
        assert context["roleContext"]["includeVars"] == {"main.yml": {"web_user": "www"}}

    def test_cached_role_is_not_mutated(self, builder, ansible_workspace):
        """The include_vars of one document never leak into the cached role."""
        role_dir = ansible_workspace / "roles" / "web"
        document = [{"include_vars": "main.yml"}]

        builder.assemble(
            document,
            str(role_dir / "tasks"),
            str(role_dir / "tasks" / "main.yml"),
            "tasks_in_role",
        )

        cached = builder.role_cache.lookup_role(str(ansible_workspace), str(role_dir))
        assert cached.include_vars is None

    def test_role_unknown_to_cache(self, builder, ansible_workspace):
        """A role created after population still yields a (partial) role branch."""
        builder.role_cache.get_or_populate(str(ansible_workspace))
        role_dir = ansible_workspace / "roles" / "fresh" / "tasks"
        role_dir.mkdir(parents=True)

        context = builder.assemble(
            [{"name": "Install package"}],
            str(role_dir),
            str(role_dir / "main.yml"),
            "tasks_in_role",
        ).to_dict()

        assert context["roleContext"] == {"includeVars": {}}

    def test_standalone_task_context(self, builder, ansible_workspace):
        tasks_dir = ansible_workspace / "tasks"
        document = [{"include_vars": "../vars/common.yml"}, {"name": "Install package"}]

        context = builder.assemble(
            document, str(tasks_dir), str(tasks_dir / "setup.yml"), "tasks"
        ).to_dict()

        assert populated_branches(context) == ["standaloneTaskContext"]
        assert context["standaloneTaskContext"] == {
            "includeVars": {"../vars/common.yml": {"env": "prod", "region": "eu"}}
        }

    def test_other_file_type_has_no_branch(self, builder, ansible_workspace):
        root = str(ansible_workspace)

        context = builder.assemble(
            [{"name": "x"}], root, os.path.join(root, "inventory.yml"), "other"
        ).to_dict()

        assert context == {
            "playbookContext": {},
            "roleContext": {},
            "standaloneTaskContext": {},
        }


class TestWorkspaceRootFor:
    def test_innermost_folder_wins(self, tmp_path):
        outer = tmp_path / "outer"
        inner = outer / "inner"
        builder = AdditionalContextBuilder(
            RoleCache(standard_role_paths=()),
            VarsFileResolver(),
            workspace_folders=[str(outer), str(inner)],
        )

        assert builder.workspace_root_for(str(inner / "site.yml")) == str(inner)

    def test_falls_back_to_first_folder(self, tmp_path):
        builder = AdditionalContextBuilder(
            RoleCache(standard_role_paths=()),
            VarsFileResolver(),
            workspace_folders=[str(tmp_path / "a"), str(tmp_path / "b")],
        )

        assert builder.workspace_root_for("/elsewhere/site.yml") == str(tmp_path / "a")

    def test_no_workspace(self):
        builder = AdditionalContextBuilder(
            RoleCache(standard_role_paths=()), VarsFileResolver()
        )

        assert builder.workspace_root_for("/elsewhere/site.yml") is None
