from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from ansible_lightspeed_context.interfaces.api import (
    BaseAuthProvider,
    BaseLightspeedApi,
    CompletionResponse,
)
from ansible_lightspeed_context.interfaces.config import LightspeedSettings
from ansible_lightspeed_context.interfaces.editor import BaseEditor


def write_yaml(path: Path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False))


@pytest.fixture
def ansible_workspace(tmp_path):
    """
    Creates a small Ansible project:

        site.yml
        vars/common.yml
        roles/web/{tasks,defaults,vars}/main.yml
        roles/db/{tasks,defaults}/main.yml
        node_modules/pkg/roles/ignored/tasks/main.yml
    """
    write_yaml(
        tmp_path / "site.yml",
        [{"name": "Site", "hosts": "all", "roles": ["web", "db"]}],
    )
    write_yaml(tmp_path / "vars" / "common.yml", {"env": "prod", "region": "eu"})
    write_yaml(
        tmp_path / "roles" / "web" / "tasks" / "main.yml",
        [{"name": "Install nginx", "ansible.builtin.package": {"name": "nginx"}}],
    )
    write_yaml(tmp_path / "roles" / "web" / "defaults" / "main.yml", {"http_port": 80})
    write_yaml(tmp_path / "roles" / "web" / "vars" / "main.yml", {"web_user": "www"})
    write_yaml(
        tmp_path / "roles" / "db" / "tasks" / "main.yml",
        [{"name": "Install postgres", "ansible.builtin.package": {"name": "postgresql"}}],
    )
    write_yaml(tmp_path / "roles" / "db" / "defaults" / "main.yml", {"db_port": 5432})
    write_yaml(
        tmp_path / "node_modules" / "pkg" / "roles" / "ignored" / "tasks" / "main.yml",
        [{"name": "Ignored"}],
    )
    return tmp_path


@pytest.fixture
def settings():
    return LightspeedSettings(url="https://lightspeed.example.com", model_id="my-model")


@pytest.fixture
def mock_editor():
    """An editor double; `active_document` must be set by each test."""
    editor = MagicMock(spec=BaseEditor)
    editor.active_document = None
    return editor


@pytest.fixture
def mock_api():
    api = MagicMock(spec=BaseLightspeedApi)
    api.completion_request = AsyncMock(
        return_value=CompletionResponse(
            predictions=["ansible.builtin.package:\n  name: nginx\n  state: present"]
        )
    )
    api.feedback_request = AsyncMock(return_value=None)
    return api


@pytest.fixture
def mock_auth():
    auth = MagicMock(spec=BaseAuthProvider)
    auth.user_has_seat = AsyncMock(return_value=True)
    return auth
