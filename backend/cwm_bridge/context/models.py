# =============================
# backend/cwm_bridge/context/models.py
# =============================
from __future__ import annotations
from pydantic import BaseModel
from typing import Any, Dict, List, Optional, Union


class CreateContextResponse(BaseModel):
    contextId: str
    status: str = "created"


class ConnectRequest(BaseModel):
    server: Optional[str] = None
    company: Optional[str] = None
    pubKey: Optional[str] = None
    privateKey: Optional[str] = None
    clientId: Optional[str] = None

    def overrides(self) -> Dict[str, Optional[str]]:
        return {
            "server": self.server,
            "company": self.company,
            "pub_key": self.pubKey,
            "private_key": self.privateKey,
            "client_id": self.clientId,
        }


class ConnectResponse(BaseModel):
    status: str = "connected"
    message: str


class ConditionsRequest(BaseModel):
    conditions: Optional[str] = None


class ExecuteCommandRequest(BaseModel):
    command: Optional[str] = None
    # an object, or [name, value] pairs when the cmdlet is order-sensitive
    params: Union[Dict[str, Any], List[List[Any]], None] = None


class DeleteContextResponse(BaseModel):
    status: str = "deleted"
    message: str
