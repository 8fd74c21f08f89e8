"""
The inline suggestion lifecycle.

A suggestion moves IDLE -> REQUESTING -> DISPLAYED and is then accepted, ignored
or superseded, after which the provider is IDLE again. While a suggestion is
displayed, a trigger at the same cursor position replays the cached items: the
editor re-invokes the provider when its suggestion toolbar appears, and a new
request at that point would make the displayed suggestion disappear. A trigger
anywhere else counts as the user ignoring the suggestion and is then handled
as a fresh trigger.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import yaml

from ansible_lightspeed_context.document import (
    check_trigger_position,
    parse_ansible_document,
    should_request_inline_suggestions,
)
from ansible_lightspeed_context.errors import (
    InvalidAnsibleDocumentError,
    LightspeedApiError,
)
from ansible_lightspeed_context.helpers import (
    EDITOR_INLINE_SUGGEST_COMMIT,
    EDITOR_INLINE_SUGGEST_HIDE,
    EDITOR_INLINE_SUGGEST_TRIGGER,
    LIGHTSPEED_FETCH_TRAINING_MATCHES,
    adjust_inline_suggestion_indent,
)
from ansible_lightspeed_context.interfaces.api import (
    BaseAuthProvider,
    BaseLightspeedApi,
    CompletionResponse,
    FeedbackRequest,
    InlineSuggestionFeedback,
)
from ansible_lightspeed_context.interfaces.config import LightspeedSettings
from ansible_lightspeed_context.interfaces.editor import (
    BaseEditor,
    CancellationToken,
    InlineCompletionItem,
    Position,
    TextDocument,
    TriggerKind,
)
from ansible_lightspeed_context.models import DocumentActivityTracker, UserAction
from ansible_lightspeed_context.request_builder import CompletionRequestBuilder

logger = logging.getLogger(__name__)


class SuggestionState(Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    DISPLAYED = "displayed"


class SuggestionOutcome(Enum):
    ACCEPTED = "accepted"
    IGNORED = "ignored"
    SUPERSEDED = "superseded"


@dataclass
class SuggestionSession:
    """State of the suggestion currently being requested or displayed."""

    suggestion_id: str = ""
    activity_id: Optional[str] = None
    document_uri: Optional[str] = None
    state: SuggestionState = SuggestionState.IDLE
    display_time: Optional[float] = None
    previous_trigger_position: Optional[Position] = None
    cached_items: List[InlineCompletionItem] = field(default_factory=list)
    current_suggestion: Optional[str] = None
    latency: Optional[float] = None
    error: Optional[str] = None

    @property
    def displayed(self) -> bool:
        return self.state == SuggestionState.DISPLAYED


class InlineSuggestionProvider:
    """Drives one inline suggestion at a time for the active Ansible document."""

    def __init__(
        self,
        settings: LightspeedSettings,
        editor: BaseEditor,
        api: BaseLightspeedApi,
        request_builder: CompletionRequestBuilder,
        activity_tracker: DocumentActivityTracker,
        auth: Optional[BaseAuthProvider] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.editor = editor
        self.api = api
        self.request_builder = request_builder
        self.activity_tracker = activity_tracker
        self.auth = auth
        self.clock = clock
        self.session = SuggestionSession()
        self.last_outcome: Optional[SuggestionOutcome] = None
        # Latest suggestion handed to the training-matches collaborator.
        self.suggestion_details: List[Dict[str, str]] = []

    @property
    def state(self) -> SuggestionState:
        return self.session.state

    def is_displayed(self) -> bool:
        return self.session.displayed

    def reset(self):
        """Returns to IDLE. Session data is kept until the next trigger."""
        self.session.state = SuggestionState.IDLE
        self.session.cached_items = []

    def _is_ansible_document(self, document: Optional[TextDocument]) -> bool:
        return document is not None and document.language_id == self.settings.language_id

    async def provide_inline_completion_items(
        self,
        document: TextDocument,
        position: Position,
        trigger_kind: TriggerKind = TriggerKind.AUTOMATIC,
        token: Optional[CancellationToken] = None,
    ) -> List[InlineCompletionItem]:
        """
        Entry point called by the editor whenever it wants inline completions.

        Returns:
            The items to display; an empty list when nothing should be shown.
        """
        if not self._is_ansible_document(self.editor.active_document):
            self.reset()
            return []
        if not self._is_ansible_document(document):
            self.reset()
            return []
        if token is not None and token.is_cancellation_requested:
            self.reset()
            return []
        if not self.settings.suggestions_enabled:
            logger.debug("Ansible Lightspeed is disabled.")
            self.reset()
            return []
        if not self.settings.url:
            self.editor.show_error_message(
                "Ansible Lightspeed URL is empty. Please provide a URL."
            )
            self.reset()
            return []

        if self.session.displayed:
            if position == self.session.previous_trigger_position:
                return self.session.cached_items
            # The user kept typing without accepting or rejecting the suggestion.
            self.editor.execute_command(EDITOR_INLINE_SUGGEST_HIDE)
            await self._user_action(UserAction.IGNORE, SuggestionOutcome.SUPERSEDED)

        return await self.get_inline_suggestion_items(
            document, position, trigger_kind, token
        )

    async def get_inline_suggestion_items(
        self,
        document: TextDocument,
        position: Position,
        trigger_kind: TriggerKind = TriggerKind.AUTOMATIC,
        token: Optional[CancellationToken] = None,
    ) -> List[InlineCompletionItem]:
        check = check_trigger_position(document, position)
        if not check.ok:
            self.reset()
            # Only explain the expected cursor position when the user asked explicitly.
            if trigger_kind == TriggerKind.INVOKE:
                self.editor.show_information_message(check.hint())
            return []

        activity_id = self.activity_tracker.get_or_create(document.uri, document.text)
        self.session = SuggestionSession(
            suggestion_id=str(uuid.uuid4()),
            activity_id=activity_id,
            document_uri=document.uri,
            state=SuggestionState.REQUESTING,
        )
        session = self.session
        logger.info("Inline suggestions triggered by user edits.")

        content = document.get_text(position).rstrip()
        try:
            parsed_document = parse_ansible_document(content)
        except InvalidAnsibleDocumentError as e:
            self.editor.show_error_message(str(e))
            self.reset()
            return []

        if parsed_document is None or not should_request_inline_suggestions(
            parsed_document
        ):
            self.reset()
            return []

        has_seat = bool(await self.auth.user_has_seat()) if self.auth else False
        if token is not None and token.is_cancellation_requested:
            self.reset()
            return []

        request_time = self.clock()
        try:
            result = await self.request_inline_suggest(
                content, parsed_document, document.uri, activity_id, has_seat
            )
        except Exception as e:
            if not isinstance(e, LightspeedApiError):
                logger.exception("Failed to request inline suggestions")
            session.error = str(e)
            self.editor.show_error_message(f"Error in inline suggestions: {e}")
            self.reset()
            return []

        if self.session is not session or (
            token is not None and token.is_cancellation_requested
        ):
            logger.debug("Discarding suggestion %s", session.suggestion_id)
            if self.session is session:
                self.reset()
            return []

        if not result.predictions:
            logger.error("Inline suggestions not found.")
            self.reset()
            return []

        response_time = self.clock()
        session.latency = (response_time - request_time) * 1000

        items = [
            InlineCompletionItem(
                adjust_inline_suggestion_indent(prediction, position.character)
            )
            for prediction in result.predictions
        ]
        session.current_suggestion = items[0].insert_text
        session.previous_trigger_position = position
        session.display_time = response_time
        session.cached_items = items
        session.state = SuggestionState.DISPLAYED
        logger.info("Received inline suggestion:\n%s", session.current_suggestion)

        self.suggestion_details = [
            {
                "suggestionId": session.suggestion_id,
                "suggestion": session.current_suggestion,
            }
        ]
        return items

    async def request_inline_suggest(
        self,
        content: str,
        parsed_document: List[Any],
        document_uri: str,
        activity_id: str,
        has_seat: bool,
    ) -> CompletionResponse:
        # Role discovery and variable files hit the filesystem; keep the loop free.
        completion_request = await asyncio.to_thread(
            self.request_builder.build,
            content,
            parsed_document,
            document_uri,
            activity_id,
            has_seat,
            self.session.suggestion_id,
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Completion request:\n%s",
                yaml.safe_dump(completion_request.to_payload(), sort_keys=False),
            )
        logger.info("Completion request sent to Ansible Lightspeed.")
        response = await self.api.completion_request(completion_request)
        logger.info("Completion response received from Ansible Lightspeed.")
        return response

    # --- User actions --------------------------------------------------------

    async def trigger_handler(self):
        """Explicit trigger command: asks the editor to request inline suggestions."""
        if not self._is_ansible_document(self.editor.active_document):
            return
        logger.info("Inline Suggestion Handler triggered using command.")
        self.editor.execute_command(EDITOR_INLINE_SUGGEST_TRIGGER)

    async def commit_handler(self):
        if not self._is_ansible_document(self.editor.active_document):
            return
        logger.info("User accepted the inline suggestion.")
        self.editor.execute_command(EDITOR_INLINE_SUGGEST_COMMIT)
        self.editor.execute_command(LIGHTSPEED_FETCH_TRAINING_MATCHES)
        await self._user_action(UserAction.ACCEPT, SuggestionOutcome.ACCEPTED)

    async def hide_handler(self):
        if not self._is_ansible_document(self.editor.active_document):
            return
        logger.info("User ignored the inline suggestion.")
        self.editor.execute_command(EDITOR_INLINE_SUGGEST_HIDE)
        await self._user_action(UserAction.IGNORE, SuggestionOutcome.IGNORED)

    async def _user_action(self, action: UserAction, outcome: SuggestionOutcome):
        session = self.session
        if not session.displayed:
            logger.debug("No inline suggestion displayed; ignoring %s", outcome.value)
            return

        user_action_time = None
        if session.display_time is not None:
            user_action_time = (self.clock() - session.display_time) * 1000

        self.reset()
        self.last_outcome = outcome
        feedback = FeedbackRequest(
            inline_suggestion=InlineSuggestionFeedback(
                suggestion_id=session.suggestion_id,
                action=action,
                latency=session.latency,
                user_action_time=user_action_time,
                document_uri=session.document_uri,
                activity_id=session.activity_id,
                error=session.error,
            )
        )
        self.session = SuggestionSession()
        try:
            await self.api.feedback_request(feedback)
        except LightspeedApiError as e:
            logger.warning("Could not send inline suggestion feedback: %s", e)
            return
        logger.debug("User action event lightSpeedInlineSuggestionFeedbackEvent sent.")
