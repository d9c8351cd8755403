# =============================
# backend/cwm_bridge/errors.py
# =============================
from __future__ import annotations
from typing import Iterable

REDACTED = "***"


class BridgeError(Exception):
    """Base class for failures that are reported to HTTP clients as ``{"error": ...}``."""
    status_code = 500

    @property
    def message(self) -> str:
        return str(self)


class NotFound(BridgeError):
    def __init__(self, context_id: str):
        super().__init__(f"Context {context_id} not found")
        self.context_id = context_id


class InvalidCommand(BridgeError):
    pass


class MissingCredential(BridgeError):
    def __init__(self, fields: Iterable[str]):
        self.fields = list(fields)
        super().__init__("Missing ConnectWise Manage credentials: " + ", ".join(self.fields))


class ConnectionFailed(BridgeError):
    pass


class ProcessSpawnFailed(BridgeError):
    pass


class ExternalCommandFailed(BridgeError):
    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class CommandTimeout(BridgeError):
    pass


class MalformedResponse(BridgeError):
    pass


def redact(text: str, secrets: Iterable[str | None]) -> str:
    """Mask every non-empty secret value found in ``text``."""
    if not text:
        return text
    # longest first so a secret that contains another is masked whole
    for s in sorted({s for s in secrets if s}, key=len, reverse=True):
        text = text.replace(s, REDACTED)
    return text
