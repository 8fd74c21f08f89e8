"""Tests for the role metadata cache and its invalidation protocol."""

import os
import shutil
from unittest.mock import MagicMock, Mock

import yaml

from ansible_lightspeed_context.models import ChangeKind, RoleChangeEvent, RoleContext
from ansible_lightspeed_context.role_cache import (
    COMMON_ROLES_KEY,
    RoleCache,
    role_path_in_roles_dir,
)
from ansible_lightspeed_context.role_parser import RoleParser


def make_cache(common_paths=(), **kwargs) -> RoleCache:
    return RoleCache(standard_role_paths=common_paths, **kwargs)


class TestRoleParser:
    """Test suite for RoleParser."""

    def test_parse_role(self, ansible_workspace):
        role = RoleParser().parse(str(ansible_workspace / "roles" / "web"))

        assert role.name == "web"
        assert role.tasks == ["main.yml"]
        assert role.role_vars == {
            "defaults": {"main.yml": {"http_port": 80}},
            "vars": {"main.yml": {"web_user": "www"}},
        }
        assert role.include_vars is None

    def test_parse_missing_role(self, tmp_path):
        assert RoleParser().parse(str(tmp_path / "nope")) is None

    def test_unparseable_vars_file_is_skipped(self, tmp_path):
        role_dir = tmp_path / "roles" / "broken"
        (role_dir / "defaults").mkdir(parents=True)
        (role_dir / "defaults" / "main.yml").write_text("key: [unclosed")

        role = RoleParser().parse(str(role_dir))

        assert role.name == "broken"
        assert role.role_vars == {}

    def test_list_roles_ignores_files_and_hidden_dirs(self, tmp_path):
        (tmp_path / "web").mkdir()
        (tmp_path / ".cache").mkdir()
        (tmp_path / "README.md").write_text("roles")

        assert RoleParser().list_roles(str(tmp_path)) == [str(tmp_path / "web")]


class TestRoleCachePopulation:
    """Test suite for lazy population."""

    def test_get_or_populate(self, ansible_workspace):
        cache = make_cache()
        root = str(ansible_workspace)

        roles = cache.get_or_populate(root)

        assert sorted(roles) == [
            os.path.join(root, "roles", "db"),
            os.path.join(root, "roles", "web"),
        ]
        assert roles[os.path.join(root, "roles", "db")].name == "db"

    def test_populated_only_once(self, ansible_workspace):
        parser = RoleParser()
        parser.parse = Mock(wraps=parser.parse)
        cache = make_cache(role_parser=parser)

        first = cache.get_or_populate(str(ansible_workspace))
        second = cache.get_or_populate(str(ansible_workspace))

        assert first is second
        assert parser.parse.call_count == 2

    def test_roles_dir_discovery_callback(self, ansible_workspace):
        callback = Mock()
        cache = make_cache(on_roles_dir_discovered=callback)

        cache.get_or_populate(str(ansible_workspace))

        callback.assert_called_once_with(
            str(ansible_workspace / "roles"), str(ansible_workspace)
        )
        assert cache.roles_dirs == {str(ansible_workspace / "roles"): str(ansible_workspace)}

    def test_unreadable_role_is_omitted(self, ansible_workspace):
        parser = RoleParser()
        real_parse = parser.parse

        def parse(role_path):
            if role_path.endswith("db"):
                return None
            return real_parse(role_path)

        parser.parse = parse
        cache = make_cache(role_parser=parser)

        roles = cache.get_or_populate(str(ansible_workspace))

        assert [os.path.basename(p) for p in roles] == ["web"]

    def test_common_roles_resolved_once(self, tmp_path):
        common_dir = tmp_path / "usr" / "roles"
        (common_dir / "ntp" / "tasks").mkdir(parents=True)
        cache = make_cache(common_paths=[str(common_dir), str(tmp_path / "absent")])

        first = cache.common_roles()
        (common_dir / "late").mkdir()
        second = cache.common_roles()

        assert first is second
        assert list(first) == [str(common_dir / "ntp")]
        assert COMMON_ROLES_KEY in cache

    def test_no_common_roles(self):
        assert make_cache().common_roles() == {}


class TestVisibleRoles:
    """Test suite for the workspace/common merge."""

    def test_workspace_roles_are_relative_to_document(self, ansible_workspace):
        cache = make_cache()
        document_dir = str(ansible_workspace / "playbooks")

        visible = cache.visible_roles(str(ansible_workspace), document_dir)

        assert sorted(visible) == [
            os.path.join("..", "roles", "db"),
            os.path.join("..", "roles", "web"),
        ]

    def test_common_roles_are_appended(self, ansible_workspace, tmp_path_factory):
        common_dir = tmp_path_factory.mktemp("common") / "roles"
        (common_dir / "ntp").mkdir(parents=True)
        cache = make_cache(common_paths=[str(common_dir)])

        visible = cache.visible_roles(str(ansible_workspace), str(ansible_workspace))

        assert list(visible) == [
            os.path.join("roles", "db"),
            os.path.join("roles", "web"),
            str(common_dir / "ntp"),
        ]

    def test_workspace_entry_wins_over_common(self, ansible_workspace):
        """A role both in the workspace and in a common path keeps the workspace value."""
        roles_dir = ansible_workspace / "roles"
        cache = make_cache(common_paths=[str(roles_dir)])
        root = str(ansible_workspace)
        workspace_roles = cache.get_or_populate(root)
        web_path = str(roles_dir / "web")
        workspace_roles[web_path] = RoleContext(name="workspace-web")
        cache._entries[COMMON_ROLES_KEY] = {web_path: RoleContext(name="common-web")}

        visible = cache.visible_roles(root, root)

        assert visible[os.path.join("roles", "web")].name == "workspace-web"
        assert web_path not in visible

    def test_no_workspace_root(self, tmp_path):
        common_dir = tmp_path / "roles"
        (common_dir / "ntp").mkdir(parents=True)
        cache = make_cache(common_paths=[str(common_dir)])

        visible = cache.visible_roles(None, "/elsewhere")

        assert list(visible) == [str(common_dir / "ntp")]


class TestInvalidation:
    """Test suite for fine-grained invalidation."""

    def test_invalidate_refreshes_one_role(self, ansible_workspace, tmp_path_factory):
        other_ws = tmp_path_factory.mktemp("other")
        (other_ws / "roles" / "api" / "tasks").mkdir(parents=True)
        cache = make_cache()
        root = str(ansible_workspace)
        roles = cache.get_or_populate(root)
        other_roles = cache.get_or_populate(str(other_ws))
        web_path = os.path.join(root, "roles", "web")
        db_before = roles[os.path.join(root, "roles", "db")]
        web_before = roles[web_path]
        api_before = dict(other_roles)

        (ansible_workspace / "roles" / "web" / "defaults" / "main.yml").write_text(
            yaml.safe_dump({"http_port": 8080})
        )
        cache.invalidate(root, web_path)

        assert roles[web_path] is not web_before
        assert roles[web_path].role_vars["defaults"]["main.yml"] == {"http_port": 8080}
        assert roles[os.path.join(root, "roles", "db")] is db_before
        assert cache.get_or_populate(str(other_ws)) == api_before

    def test_deleted_role_is_removed(self, ansible_workspace):
        cache = make_cache()
        root = str(ansible_workspace)
        roles = cache.get_or_populate(root)
        db_path = os.path.join(root, "roles", "db")

        shutil.rmtree(db_path)
        cache.invalidate(root, db_path)

        assert db_path not in roles
        assert os.path.join(root, "roles", "web") in roles

    def test_invalidate_unknown_workspace_is_noop(self):
        parser = MagicMock(spec=RoleParser)
        cache = make_cache(role_parser=parser)

        cache.invalidate("/never/populated", "/never/populated/roles/x")

        parser.parse.assert_not_called()

    def test_events_are_applied_on_next_read(self, ansible_workspace):
        cache = make_cache()
        root = str(ansible_workspace)
        roles = cache.get_or_populate(root)
        new_role = ansible_workspace / "roles" / "cache"
        (new_role / "tasks").mkdir(parents=True)

        cache.post(RoleChangeEvent(root, str(new_role), ChangeKind.MODIFIED))
        assert str(new_role) not in roles

        cache.get_or_populate(root)

        assert roles[str(new_role)].name == "cache"

    def test_post_for_path(self, ansible_workspace):
        cache = make_cache()
        root = str(ansible_workspace)
        cache.get_or_populate(root)
        cache.invalidate = Mock()

        queued = cache.post_for_path(
            str(ansible_workspace / "roles" / "web" / "tasks" / "main.yml"),
            ChangeKind.FILE_OPEN,
        )
        handled = cache.process_pending_events()

        assert queued
        assert handled == 1
        cache.invalidate.assert_called_once_with(
            root, str(ansible_workspace / "roles" / "web")
        )

    def test_post_for_path_nested_role(self, ansible_workspace):
        """A file of a role nested in another role refreshes the inner role."""
        inner_role = ansible_workspace / "roles" / "web" / "roles" / "inner"
        (inner_role / "tasks").mkdir(parents=True)
        cache = make_cache()
        root = str(ansible_workspace)
        cache.get_or_populate(root)
        cache.invalidate = Mock()

        cache.post_for_path(str(inner_role / "tasks" / "main.yml"), ChangeKind.MODIFIED)
        cache.process_pending_events()

        cache.invalidate.assert_called_once_with(root, str(inner_role))

    def test_post_for_path_outside_roles(self, ansible_workspace):
        cache = make_cache()
        cache.get_or_populate(str(ansible_workspace))

        assert not cache.post_for_path(
            str(ansible_workspace / "site.yml"), ChangeKind.TAB_CHANGE
        )
        assert cache.process_pending_events() == 0


class TestRolePathInRolesDir:
    def test_file_inside_role(self):
        assert (
            role_path_in_roles_dir("/ws/roles", "/ws/roles/web/tasks/main.yml")
            == "/ws/roles/web"
        )

    def test_roles_dir_itself(self):
        assert role_path_in_roles_dir("/ws/roles", "/ws/roles") is None

    def test_outside(self):
        assert role_path_in_roles_dir("/ws/roles", "/ws/rolesx/web") is None
