from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ansible_lightspeed_context.models import UserAction


class CompletionMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_uri: str = Field(alias="documentUri")
    ansible_file_type: str = Field(alias="ansibleFileType")
    activity_id: str = Field(alias="activityId")
    additional_context: dict[str, Any] | None = Field(
        default=None, alias="additionalContext"
    )


class CompletionRequest(BaseModel):
    """Payload of a completion request sent to the Lightspeed service."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    suggestion_id: str = Field(alias="suggestionId")
    model_id: str | None = Field(default=None, alias="modelId")
    metadata: CompletionMetadata | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class CompletionResponse(BaseModel):
    predictions: list[str] = Field(default_factory=list)


class InlineSuggestionFeedback(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    suggestion_id: str = Field(alias="suggestionId")
    action: UserAction
    latency: float | None = None
    user_action_time: float | None = Field(default=None, alias="userActionTime")
    document_uri: str | None = Field(default=None, alias="documentUri")
    activity_id: str | None = Field(default=None, alias="activityId")
    error: str | None = None


class FeedbackRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    inline_suggestion: InlineSuggestionFeedback = Field(alias="inlineSuggestion")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class BaseLightspeedApi(ABC):
    """
    The contract the engine needs from the remote Lightspeed service.
    Authentication, retries and transport details belong to implementations.
    """

    @abstractmethod
    async def completion_request(self, request: CompletionRequest) -> CompletionResponse:
        """
        Sends a completion request.

        Raises:
            LightspeedApiError: If the request fails.
        """
        ...

    @abstractmethod
    async def feedback_request(self, feedback: FeedbackRequest) -> None:
        """Sends a user action event for a displayed suggestion."""
        ...


class BaseAuthProvider(ABC):
    """Answers whether the current user is entitled to context-enriched completions."""

    @abstractmethod
    async def user_has_seat(self) -> bool | None: ...
