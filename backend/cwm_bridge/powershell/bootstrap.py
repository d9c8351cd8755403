# =============================
# backend/cwm_bridge/powershell/bootstrap.py
# =============================
from __future__ import annotations
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from .. import config
from ..errors import ConnectionFailed, MissingCredential

log = logging.getLogger(__name__)

# bundle field -> Connect-CWM parameter
CONNECT_PARAMS = {
    "server": "Server",
    "company": "Company",
    "pub_key": "PubKey",
    "private_key": "PrivateKey",
    "client_id": "ClientID",
}


class CredentialBundle(BaseModel):
    model_config = ConfigDict(frozen=True)

    server: str
    company: str
    pub_key: str
    private_key: str
    client_id: str

    def connect_params(self) -> dict[str, str]:
        return {param: getattr(self, field) for field, param in CONNECT_PARAMS.items()}

    def connect_pairs(self) -> list[list[str]]:
        """Connect-CWM arguments as ordered [name, value] pairs, the shape the splat helper reads."""
        return [[param, value] for param, value in self.connect_params().items()]

    def secrets(self) -> list[str]:
        # server and company are not secret, but the keys and client id are
        return [self.pub_key, self.private_key, self.client_id]


def ambient_defaults() -> dict[str, Optional[str]]:
    return {
        "server": config.CWM_SERVER,
        "company": config.CWM_COMPANY,
        "pub_key": config.CWM_PUBKEY,
        "private_key": config.CWM_PRIVATEKEY,
        "client_id": config.CWM_CLIENTID,
    }


class ConnectionBootstrapper:
    """Decides which credential bundle(s) a command authenticates with."""

    def __init__(self, defaults: dict[str, Optional[str]] | None = None):
        self._defaults = ambient_defaults() if defaults is None else dict(defaults)

    def resolve(self, overrides: dict[str, Any] | None = None) -> CredentialBundle:
        """Merge per-call values over the ambient defaults, field by field."""
        overrides = overrides or {}
        merged = {f: overrides.get(f) or self._defaults.get(f) for f in CONNECT_PARAMS}
        missing = [f for f, v in merged.items() if not v]
        if missing:
            raise MissingCredential(missing)
        return CredentialBundle(**merged)

    def global_bundle(self) -> CredentialBundle:
        return self.resolve()

    def candidates(self, context: Any) -> list[CredentialBundle]:
        """
        Bundles to try, in order: the context's locally staged bundle, then the
        globally registered one. Raises ConnectionFailed when neither is usable.
        """
        bundles: list[CredentialBundle] = []
        local = getattr(context, "credentials", None)
        if local is not None:
            bundles.append(local)
        try:
            ambient = self.global_bundle()
        except MissingCredential as e:
            if not bundles:
                raise ConnectionFailed(f"Failed to connect to ConnectWise Manage: {e}") from e
            log.debug("No global credential bundle: %s", e)
        else:
            if ambient not in bundles:
                bundles.append(ambient)
        return bundles

    def secrets(self) -> list[str]:
        return [v for f, v in self._defaults.items() if v and f not in ("server", "company")]
