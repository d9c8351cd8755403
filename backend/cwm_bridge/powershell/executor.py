# =============================
# backend/cwm_bridge/powershell/executor.py
# =============================
from __future__ import annotations
import json
import logging
import re
import subprocess
import threading
from typing import Any, Iterable, Sequence

from ..config import COMMAND_TIMEOUT_SEC, CWM_MODULE_NAME, JSON_DEPTH, MAX_CONCURRENT_COMMANDS, POWERSHELL_EXE
from ..errors import (
    CommandTimeout, ConnectionFailed, ExternalCommandFailed, MalformedResponse, ProcessSpawnFailed, redact,
)
from .bootstrap import CredentialBundle
from .formatter import Params, normalize_params, render_command, validate_command_name

log = logging.getLogger(__name__)

EXIT_CONNECT_FAILED = 2

# The script never has user input or credentials interpolated into it: everything
# arrives as JSON on stdin and is splatted into the cmdlets.
CWM_SCRIPT = r"""
$ErrorActionPreference = 'Stop'
$payload = [Console]::In.ReadToEnd() | ConvertFrom-Json

function ConvertTo-Splat($pairs) {
    $splat = @{}
    foreach ($pair in @($pairs)) {
        if ($null -ne $pair) { $splat[[string]$pair[0]] = $pair[1] }
    }
    $splat
}

if (-not (Get-Module -ListAvailable -Name $payload.module)) {
    [Console]::Error.WriteLine("$($payload.module) module is not installed")
    exit 3
}
Import-Module $payload.module

if (-not $CWMServerConnection) {
    $connected = $false
    foreach ($bundle in @($payload.connections)) {
        try {
            $creds = ConvertTo-Splat $bundle
            Connect-CWM @creds
            $connected = $true
            break
        } catch {
            [Console]::Error.WriteLine("Failed to connect to ConnectWise Manage: $_")
        }
    }
    if (-not $connected) { exit 2 }
}

if ($payload.command) {
    try {
        $splat = ConvertTo-Splat $payload.params
        $result = & $payload.command @splat
        if ($null -ne $result) { $result | ConvertTo-Json -Depth $payload.depth }
    } catch {
        [Console]::Error.WriteLine("Command execution failed: $_")
        exit 1
    }
}
"""

_SESSION_LOST_RE = re.compile(
    r"not connected|unauthori[sz]ed|\b401\b|session (?:has )?(?:expired|timed out)|Connect-CWM",
    re.IGNORECASE,
)


def is_session_lost(err: ExternalCommandFailed) -> bool:
    return bool(_SESSION_LOST_RE.search(err.stderr or ""))


def parse_json(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError as e:
        raise MalformedResponse(f"Invalid JSON from PowerShell: {e}") from e


class PowerShellExecutor:
    """Runs PowerShell scripts with a bounded number of concurrent processes."""

    def __init__(
        self,
        exe: str = POWERSHELL_EXE,
        timeout: float = COMMAND_TIMEOUT_SEC,
        max_concurrent: int = MAX_CONCURRENT_COMMANDS,
    ):
        self.exe = exe
        self.timeout = timeout
        self._slots = threading.BoundedSemaphore(max(1, max_concurrent))

    def run_script(
        self,
        script: str,
        stdin: str | None = None,
        timeout: float | None = None,
        secrets: Iterable[str | None] = (),
    ) -> str:
        """Run ``script`` and return its trimmed stdout; non-zero exit raises ExternalCommandFailed."""
        timeout = timeout or self.timeout
        args = [self.exe, "-NoProfile", "-NonInteractive", "-Command", script]
        with self._slots:
            try:
                proc = subprocess.run(args, input=stdin, capture_output=True, text=True, timeout=timeout)
            except subprocess.TimeoutExpired as e:
                # subprocess.run kills the child before re-raising
                raise CommandTimeout(f"PowerShell execution timed out after {timeout:g}s") from e
            except OSError as e:
                raise ProcessSpawnFailed(f"Failed to start PowerShell process: {e}") from e
        if proc.returncode != 0:
            stderr = redact((proc.stderr or "").strip(), secrets)
            raise ExternalCommandFailed(
                f"PowerShell execution failed with code {proc.returncode}: {stderr}",
                returncode=proc.returncode,
                stderr=stderr,
            )
        return (proc.stdout or "").strip()


class CwmClient:
    """Runs ConnectWise Manage cmdlets, authenticating first in the same PowerShell process."""

    def __init__(self, executor: PowerShellExecutor | None = None, module: str = CWM_MODULE_NAME, depth: int = JSON_DEPTH):
        self.executor = executor or PowerShellExecutor()
        self.module = module
        self.depth = depth

    def execute(
        self,
        command: str,
        params: Params = None,
        bundles: Sequence[CredentialBundle] = (),
        secrets: Iterable[str | None] = (),
    ) -> Any:
        validate_command_name(command)
        pairs = normalize_params(params)
        out = self._invoke(command, pairs, bundles, secrets)
        return parse_json(out)

    def connect(self, bundle: CredentialBundle) -> None:
        self._invoke(None, [], [bundle], ())

    def _invoke(self, command: str | None, pairs: list, bundles: Sequence[CredentialBundle], secrets: Iterable[str | None]) -> str:
        all_secrets = [*secrets, *(s for b in bundles for s in b.secrets())]
        payload = {
            "module": self.module,
            "connections": [b.connect_pairs() for b in bundles],
            "command": command,
            "params": pairs,
            "depth": self.depth,
        }
        if command:
            log.debug("Running %s", render_command(command, pairs, all_secrets))
        else:
            log.debug("Running Connect-CWM")
        try:
            return self.executor.run_script(CWM_SCRIPT, stdin=json.dumps(payload), secrets=all_secrets)
        except ExternalCommandFailed as e:
            if e.returncode == EXIT_CONNECT_FAILED:
                raise ConnectionFailed(e.stderr or "Failed to connect to ConnectWise Manage") from e
            raise
