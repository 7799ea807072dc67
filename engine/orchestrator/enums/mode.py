"""
Interaction mode enumeration.

Modes are orthogonal to control states:
- State answers: "What is the voice loop doing?"
- Mode answers:  "Is the user typing or talking?"
"""

from __future__ import annotations

from enum import Enum


class Mode(str, Enum):
    """
    Interaction mode of the conversation engine.

    TEXT:
        Typed input; replies stream into the message ledger.
    VOICE:
        Spoken input; replies are accumulated and spoken back.
    """

    TEXT = "TEXT"
    VOICE = "VOICE"
