# =============================
# backend/cwm_bridge/config.py
# =============================
from __future__ import annotations
import os
from dotenv import load_dotenv

load_dotenv()

# HTTP
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", 3000))
CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# ConnectWise Manage credentials (fallbacks; per-call values win)
CWM_SERVER: str | None = os.environ.get("CWM_SERVER") or None
CWM_COMPANY: str | None = os.environ.get("CWM_COMPANY") or None
CWM_PUBKEY: str | None = os.environ.get("CWM_PUBKEY") or None
CWM_PRIVATEKEY: str | None = os.environ.get("CWM_PRIVATEKEY") or None
CWM_CLIENTID: str | None = os.environ.get("CWM_CLIENTID") or None

# PowerShell
POWERSHELL_EXE = os.environ.get("POWERSHELL_EXE") or ("powershell.exe" if os.name == "nt" else "pwsh")
CWM_MODULE_NAME = os.environ.get("CWM_MODULE_NAME", "ConnectWiseManageAPI")
COMMAND_TIMEOUT_SEC = float(os.environ.get("COMMAND_TIMEOUT_SEC", 120))
MAX_CONCURRENT_COMMANDS = int(os.environ.get("MAX_CONCURRENT_COMMANDS", 4))
JSON_DEPTH = int(os.environ.get("JSON_DEPTH", 10))

# Contexts
CONTEXT_IDLE_SEC = float(os.environ.get("CONTEXT_IDLE_SEC", 3600))
CONTEXT_SWEEP_SEC = float(os.environ.get("CONTEXT_SWEEP_SEC", 3600))  # 0 => no background sweep
