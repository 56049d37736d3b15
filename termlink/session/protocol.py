"""
Wire codec for the terminal websocket.

Frames are JSON objects with a "type" discriminator. Outbound payloads
ride under "data"; inbound messages put their fields at the top level.
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..errors import ProtocolError
from .base import ChallengeKind

logger = logging.getLogger(__name__)

# Websocket close code the server uses when the session token is rejected
AUTH_FAILURE_CLOSE_CODE = 1008


class MessageType(str, Enum):
    # Outbound
    CONNECT_TO_HOST = "connectToHost"
    INPUT = "input"
    RESIZE = "resize"
    PING = "ping"
    PASSWORD_RESPONSE = "password_response"
    TOTP_RESPONSE = "totp_response"
    RECONNECT_WITH_CREDENTIALS = "reconnect_with_credentials"

    # Inbound
    DATA = "data"
    ERROR = "error"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    TOTP_REQUIRED = "totp_required"
    TOTP_RETRY = "totp_retry"
    PASSWORD_REQUIRED = "password_required"
    KEYBOARD_INTERACTIVE_AVAILABLE = "keyboard_interactive_available"
    AUTH_METHOD_NOT_AVAILABLE = "auth_method_not_available"
    PONG = "pong"


class ErrorKind(Enum):
    TRANSPORT = "transport"
    AUTHENTICATION = "authentication"
    GENERAL = "general"


@dataclass
class InboundMessage:
    """Decoded server frame."""
    type: str
    data: Any = None
    message: Optional[str] = None
    prompt: Optional[str] = None
    attempts_remaining: Optional[int] = None


# -----------------------------------------------------------------------------
# Outbound
# -----------------------------------------------------------------------------

def encode(message: dict) -> str:
    return json.dumps(message)


def connect_to_host(
    cols: int,
    rows: int,
    host_config: dict,
    initial_path: Optional[str] = None,
    execute_command: Optional[str] = None,
) -> dict:
    data = {"cols": cols, "rows": rows, "hostConfig": host_config}
    if initial_path:
        data["initialPath"] = initial_path
    if execute_command:
        data["executeCommand"] = execute_command
    return {"type": MessageType.CONNECT_TO_HOST.value, "data": data}


def input_message(data: str) -> dict:
    return {"type": MessageType.INPUT.value, "data": data}


def resize_message(cols: int, rows: int) -> dict:
    return {"type": MessageType.RESIZE.value, "data": {"cols": cols, "rows": rows}}


def ping_message() -> dict:
    return {"type": MessageType.PING.value}


def auth_response(kind: ChallengeKind, code: str) -> dict:
    """Answer to a TOTP or password challenge."""
    if kind is ChallengeKind.PASSWORD:
        msg_type = MessageType.PASSWORD_RESPONSE
    elif kind is ChallengeKind.TOTP:
        msg_type = MessageType.TOTP_RESPONSE
    else:
        raise ValueError(f"No typed response for challenge kind {kind.value}")
    return {"type": msg_type.value, "data": {"code": code}}


def reconnect_with_credentials(
    cols: int,
    rows: int,
    host_config: dict,
    password: Optional[str] = None,
    ssh_key: Optional[str] = None,
    key_password: Optional[str] = None,
) -> dict:
    data = {"cols": cols, "rows": rows, "hostConfig": host_config}
    if password is not None:
        data["password"] = password
    if ssh_key is not None:
        data["sshKey"] = ssh_key
    if key_password is not None:
        data["keyPassword"] = key_password
    return {"type": MessageType.RECONNECT_WITH_CREDENTIALS.value, "data": data}


# -----------------------------------------------------------------------------
# Inbound
# -----------------------------------------------------------------------------

def decode(text: str) -> InboundMessage:
    """
    Parse one inbound frame.

    Raises:
        ProtocolError: not JSON, not an object, or no string "type"
    """
    try:
        obj = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ProtocolError(f"Invalid JSON frame: {e}", raw=str(text)) from e

    if not isinstance(obj, dict):
        raise ProtocolError("Frame is not a JSON object", raw=text)

    msg_type = obj.get("type")
    if not isinstance(msg_type, str) or not msg_type:
        raise ProtocolError("Frame has no type", raw=text)

    attempts = obj.get("attempts_remaining")
    if attempts is not None:
        try:
            attempts = int(attempts)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric attempts_remaining: {attempts!r}")
            attempts = None

    message = obj.get("message")
    prompt = obj.get("prompt")
    return InboundMessage(
        type=msg_type,
        data=obj.get("data"),
        message=str(message) if message is not None else None,
        prompt=str(prompt) if prompt is not None else None,
        attempts_remaining=attempts,
    )


def classify_error(message: str) -> ErrorKind:
    """Sort a server error message into transport, auth or general."""
    text = (message or "").lower()

    if "connection" in text or "timeout" in text or "network" in text:
        return ErrorKind.TRANSPORT

    if (
        ("auth" in text and "failed" in text)
        or "permission denied" in text
        or ("invalid" in text and ("password" in text or "key" in text))
        or "incorrect password" in text
    ):
        return ErrorKind.AUTHENTICATION

    return ErrorKind.GENERAL
