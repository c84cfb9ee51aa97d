"""
Admission filter for inbound chat frames.

Every raw payload delivered by the transport passes through here before it
can reach the session's message log. Anything that is not a well-formed
``message`` or ``system`` frame is dropped without surfacing an error, so a
single malformed frame can never destabilize the connection.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from .logger import get_logger
from .schemas import ChatFrame, ChatMessage
from .utils import pydantic_parse

logger = get_logger(__name__)


class MessageAdmissionFilter:
    """
    Validates and classifies raw inbound payloads.

    Admission rule: the payload must decode as a JSON object whose ``type``
    is ``"message"`` or ``"system"`` and whose ``text`` is a string. All
    other shapes are dropped (``admit()`` returns None).

    Examples
    --------
    >>> admission = MessageAdmissionFilter()
    >>> admission.admit('{"type": "system", "text": "welcome"}')
    ChatMessage(kind=<MessageKind.SYSTEM: 'system'>, body='welcome')
    >>> admission.admit('{"type": "typing"}') is None
    True
    """

    def admit(self, raw: str | bytes) -> ChatMessage | None:
        """
        Return the admitted message, or None if the payload must be dropped.

        Parameters
        ----------
        raw : str | bytes
            Payload exactly as delivered by the transport. Bytes are decoded
            as UTF-8.
        """
        data = self._deserialize(raw)
        if not isinstance(data, dict):
            logger.debug("Dropping inbound frame: not a JSON object")
            return None

        try:
            frame = pydantic_parse(ChatFrame, data)
        except ValidationError as e:
            logger.debug(f"Dropping inbound frame: {e.error_count()} validation error(s)")
            return None

        return frame.to_message()

    def _deserialize(self, raw: str | bytes) -> Any:
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = bytes(raw).decode("utf-8")
            except UnicodeDecodeError:
                logger.debug("Dropping inbound frame: payload is not valid UTF-8")
                return None
        if not isinstance(raw, str):
            return None

        try:
            return json.loads(raw)
        except ValueError:
            # json.JSONDecodeError is a ValueError subclass
            logger.debug("Dropping inbound frame: payload is not valid JSON")
            return None
        except RecursionError:
            logger.debug("Dropping inbound frame: payload is nested too deeply")
            return None
