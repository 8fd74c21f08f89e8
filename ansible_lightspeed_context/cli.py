#!/usr/bin/env python

import argparse
import logging
import os
import sys
from pathlib import Path

import yaml

from .classifier import get_ansible_file_type
from .context_builder import AdditionalContextBuilder
from .document import (
    check_trigger_position,
    parse_ansible_document,
    should_request_inline_suggestions,
)
from .errors import ConfigurationError, InvalidAnsibleDocumentError
from .interfaces.config import LightspeedSettings
from .interfaces.editor import Position, TextDocument
from .models import DocumentActivityTracker
from .request_builder import CompletionRequestBuilder
from .role_cache import RoleCache
from .vars_resolver import VarsFileResolver


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ansible-lightspeed-context",
        description=(
            "Show the completion request Ansible Lightspeed would send for a cursor "
            "position in a playbook or task file. No request is sent."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("file", help="Path to the playbook or task file.")
    parser.add_argument(
        "--line", type=int, required=True, help="Cursor line (1-indexed)."
    )
    parser.add_argument(
        "--column", type=int, default=0, help="Cursor column (0-indexed)."
    )
    parser.add_argument(
        "--workspace",
        default=os.getcwd(),
        help="Workspace root used for role discovery.",
    )
    parser.add_argument("--config", help="Path to a Lightspeed settings YAML file.")
    parser.add_argument(
        "--no-entitlement",
        action="store_true",
        help="Build the request of a user without a seat (no additional context).",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv=None):
    """
    Parses the command line, builds the completion request for the given
    position and prints it as YAML.
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = (
            LightspeedSettings.from_file(args.config)
            if args.config
            else LightspeedSettings()
        )
    except ConfigurationError as e:
        print(e, file=sys.stderr)
        sys.exit(1)

    file_path = Path(args.file).resolve()
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Error reading '{file_path}': {e}", file=sys.stderr)
        sys.exit(1)

    document = TextDocument(uri=file_path.as_uri(), text=text)
    position = Position(line=args.line - 1, character=args.column)

    check = check_trigger_position(document, position)
    if not check.ok:
        print(check.hint(), file=sys.stderr)
        sys.exit(1)

    prompt = document.get_text(position).rstrip()
    try:
        parsed_document = parse_ansible_document(prompt)
    except InvalidAnsibleDocumentError as e:
        print(e, file=sys.stderr)
        sys.exit(1)

    if parsed_document is None or not should_request_inline_suggestions(parsed_document):
        print("No inline suggestion would be requested at this position.", file=sys.stderr)
        sys.exit(1)

    role_cache = RoleCache()
    context_builder = AdditionalContextBuilder(
        role_cache, VarsFileResolver(), [args.workspace]
    )
    request_builder = CompletionRequestBuilder(settings, context_builder)
    activity_id = DocumentActivityTracker().get_or_create(document.uri, text)

    request = request_builder.build(
        prompt,
        parsed_document,
        document.uri,
        activity_id,
        has_entitlement=not args.no_entitlement,
    )
    report = {
        "ansibleFileType": get_ansible_file_type(str(file_path), parsed_document),
        "request": request.to_payload(),
    }
    print(yaml.safe_dump(report, sort_keys=False), end="")


if __name__ == "__main__":
    main()
