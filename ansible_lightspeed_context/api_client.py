"""HTTP client for the Lightspeed completion and feedback endpoints."""

import asyncio
import json
import logging
from typing import Any, Callable, Optional
from urllib.error import HTTPError, URLError

from ansible.module_utils.urls import open_url
from pydantic import ValidationError

from ansible_lightspeed_context.errors import LightspeedApiError
from ansible_lightspeed_context.helpers import (
    LIGHTSPEED_SUGGESTION_COMPLETION_URL,
    LIGHTSPEED_SUGGESTION_FEEDBACK_URL,
)
from ansible_lightspeed_context.interfaces.api import (
    BaseLightspeedApi,
    CompletionRequest,
    CompletionResponse,
    FeedbackRequest,
)
from ansible_lightspeed_context.interfaces.config import LightspeedSettings

logger = logging.getLogger(__name__)


class LightspeedApiClient(BaseLightspeedApi):
    """
    Sends requests with Ansible's `open_url`. The blocking call runs in a worker
    thread so the event loop stays responsive while waiting for the service.
    """

    def __init__(
        self,
        settings: LightspeedSettings,
        access_token: Optional[Callable[[], Optional[str]]] = None,
    ):
        """
        Initializes the client.

        Args:
            settings: Provides the service URL and the request timeout.
            access_token: Returns the current OAuth access token, if any.
        """
        self.settings = settings
        self.access_token = access_token

    async def completion_request(self, request: CompletionRequest) -> CompletionResponse:
        body = await asyncio.to_thread(
            self._send_request,
            "POST",
            LIGHTSPEED_SUGGESTION_COMPLETION_URL,
            request.to_payload(),
        )
        try:
            return CompletionResponse.model_validate(body or {})
        except ValidationError as e:
            raise LightspeedApiError(f"Unexpected completion response: {e}") from e

    async def feedback_request(self, feedback: FeedbackRequest) -> None:
        await asyncio.to_thread(
            self._send_request,
            "POST",
            LIGHTSPEED_SUGGESTION_FEEDBACK_URL,
            feedback.to_payload(),
        )

    def _build_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.settings.url.rstrip('/')}/api/{path.lstrip('/')}"

    def _send_request(self, method: str, path: str, data: Any = None) -> Any:
        """
        A wrapper around open_url that turns every failure into LightspeedApiError.
        """
        url = self._build_url(path)
        headers = {"Content-Type": "application/json"}
        token = self.access_token() if self.access_token else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            payload = json.dumps(data) if data is not None else None
        except (TypeError, ValueError) as e:
            raise LightspeedApiError(f"Could not encode request to {url}: {e}") from e

        try:
            response = open_url(
                url,
                data=payload,
                headers=headers,
                method=method,
                timeout=self.settings.timeout,
            )
            body_content = response.read()
        except HTTPError as e:
            error_details = ""
            try:
                error_details = e.read().decode(errors="ignore")
            except OSError as read_error:
                logger.debug("Could not read error body from %s: %s", url, read_error)
            raise LightspeedApiError(
                f"Request to {url} failed. Status: {e.code}. Message: {e.reason}. {error_details}",
                status_code=e.code,
            ) from e
        except (URLError, OSError) as e:
            raise LightspeedApiError(f"Request to {url} failed: {e}") from e

        if not body_content:
            return None
        try:
            return json.loads(body_content)
        except json.JSONDecodeError as e:
            raise LightspeedApiError(
                f"Lightspeed returned a response from {url} that was not valid JSON."
            ) from e
