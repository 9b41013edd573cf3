"""
Command Parser - Turns command text into a structured trial-generation intent
"""

import json
import logging
import re
from typing import Any, Dict

from models.command import CommandIntent, GENERATE_TRIAL_ACTION

logger = logging.getLogger(__name__)

SIGILS = ("!", "/")

INVALID_FORMAT_MESSAGE = "Invalid command format. Use: !generateTrial [serviceName]"

COMMAND_PATTERN = re.compile(
    r"^(?P<action>" + GENERATE_TRIAL_ACTION + r")\s+(?P<service>[A-Za-z0-9]+)(?:\s+(?P<params>.+))?$",
    re.DOTALL,
)

SHORTHAND_PATTERN = re.compile(r"^[!/]?(?P<service>[A-Za-z0-9]+)$")


class CommandParseError(ValueError):
    """Raised when command text does not match the canonical command form."""

    def __init__(self, command: str, message: str = INVALID_FORMAT_MESSAGE):
        super().__init__(message)
        self.command = command
        self.message = message


def _strip_sigil(text: str) -> str:
    if text[:1] in SIGILS:
        return text[1:]
    return text


def parse_parameters(params_string: str) -> Dict[str, Any]:
    """
    Parse the optional parameter block of a command.

    A block wrapped in braces is read as a JSON object. Anything else is read
    as whitespace separated key=value pairs. A malformed block degrades to an
    empty (or partial) mapping and never fails the command.
    """
    text = (params_string or "").strip()
    if not text:
        return {}

    if text.startswith("{") and text.endswith("}"):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring malformed JSON parameters {text!r}: {e}")
            return {}
        if not isinstance(parsed, dict):
            logger.warning(f"Ignoring non-object JSON parameters {text!r}")
            return {}
        return parsed

    parameters: Dict[str, Any] = {}
    for token in text.split():
        key, sep, value = token.partition("=")
        if sep and key and value:
            parameters[key] = value
    return parameters


def parse_command(command: str) -> CommandIntent:
    """
    Parse a canonical command such as ``!generateTrial netflix amount=5``.

    Args:
        command: Raw command text

    Returns:
        CommandIntent with action, service name (case preserved) and parameters

    Raises:
        CommandParseError: If the text does not match the command format
    """
    if command is None:
        raise CommandParseError("")

    text = _strip_sigil(command.strip())
    match = COMMAND_PATTERN.match(text)
    if not match:
        raise CommandParseError(command)

    return CommandIntent(
        action=match.group("action"),
        service_name=match.group("service"),
        parameters=parse_parameters(match.group("params") or ""),
    )


def expand_shorthand(command: str) -> str:
    """
    Rewrite bare input (``netflix``, ``/netflix``) into ``generateTrial netflix``.

    Used at the entry point only. Anything that is not a single bare word is
    returned unchanged so the parser sees the original text.
    """
    text = (command or "").strip()
    match = SHORTHAND_PATTERN.match(text)
    if not match or match.group("service") == GENERATE_TRIAL_ACTION:
        return text
    return f"{GENERATE_TRIAL_ACTION} {match.group('service')}"
