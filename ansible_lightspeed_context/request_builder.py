"""Builds the payload of a completion request."""

import os
import uuid
from typing import Any, List, Optional

from ansible_lightspeed_context.classifier import get_ansible_file_type
from ansible_lightspeed_context.context_builder import AdditionalContextBuilder
from ansible_lightspeed_context.helpers import hash_document_uri, uri_to_path
from ansible_lightspeed_context.interfaces.api import (
    CompletionMetadata,
    CompletionRequest,
)
from ansible_lightspeed_context.interfaces.config import LightspeedSettings


class CompletionRequestBuilder:
    def __init__(
        self, settings: LightspeedSettings, context_builder: AdditionalContextBuilder
    ):
        self.settings = settings
        self.context_builder = context_builder

    def build(
        self,
        prompt: str,
        parsed_document: List[Any],
        document_uri: str,
        activity_id: str,
        has_entitlement: bool,
        suggestion_id: Optional[str] = None,
    ) -> CompletionRequest:
        """
        Builds a completion request.

        The document URI is only ever sent as a one-way hash. The model id and the
        additional context are attached for entitled users only; for everyone else
        the role cache and the variable files are not touched at all.

        Args:
            prompt: Document text up to the cursor.
            parsed_document: The parsed prompt.
            document_uri: URI of the document being edited.
            activity_id: Activity identifier of the document.
            has_entitlement: Whether the user has a seat.
            suggestion_id: Identifier to use; a fresh one is generated when omitted.
        """
        document_file_path = uri_to_path(document_uri)
        document_dir_path = os.path.dirname(document_file_path)
        ansible_file_type = get_ansible_file_type(document_file_path, parsed_document)

        model_id = None
        additional_context = None
        if has_entitlement:
            model_id = self.settings.model_id
            additional_context = self.context_builder.assemble(
                parsed_document,
                document_dir_path,
                document_file_path,
                ansible_file_type,
            ).to_dict()

        return CompletionRequest(
            prompt=prompt,
            suggestion_id=suggestion_id or str(uuid.uuid4()),
            model_id=model_id,
            metadata=CompletionMetadata(
                document_uri=hash_document_uri(document_uri),
                ansible_file_type=ansible_file_type,
                activity_id=activity_id,
                additional_context=additional_context,
            ),
        )
