from __future__ import annotations

"""
HTTP client for a remote ledger.

Contract (over the wire):

  POST {base_url}/process-deposits
    Request:  BatchCommitRequest JSON (camelCase, hashes as decimal strings)
    Response: LedgerReceipt JSON

  GET {base_url}/root
    Response: {"root": "<decimal>", "nextBatch": <int>}

A rejected commit is a normal 200 response with ``accepted: false``.
Transport errors, non-2xx status codes and undecodable bodies are raised as
LedgerSubmissionFailure so the accumulator rolls the batch back.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import requests

from rollupnet.ledger.base import ExternalLedger
from rollupnet.protocol.errors import LedgerSubmissionFailure
from rollupnet.protocol.models import BatchCommitRequest, LedgerReceipt

logger = logging.getLogger(__name__)


class HTTPLedgerClient(ExternalLedger):
    """
    Ledger collaborator reached over HTTP.

    Typical usage:

        ledger = HTTPLedgerClient("http://ledger:8545", timeout=10.0)
        accumulator = BatchAccumulator(config, ledger, signer)

    Blocking requests run in a worker thread so the event loop keeps
    admitting deposits while a commit is in flight.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    async def submit(self, request: BatchCommitRequest) -> LedgerReceipt:
        data = await asyncio.to_thread(
            self._call, "POST", "/process-deposits", request.to_dict()
        )
        try:
            return LedgerReceipt.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise LedgerSubmissionFailure(
                f"Malformed receipt for batch {request.batch_index}: {exc}",
                batch_index=request.batch_index,
            ) from exc

    async def current_root(self) -> int:
        data = await asyncio.to_thread(self._call, "GET", "/root", None)
        try:
            return int(data["root"])
        except (KeyError, TypeError, ValueError) as exc:
            raise LedgerSubmissionFailure(f"Malformed root response: {exc}") from exc

    def _call(self, method: str, path: str, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        url = self._base_url + path
        try:
            if method == "POST":
                response = self._session.post(url, json=payload, timeout=self._timeout)
            else:
                response = self._session.get(url, timeout=self._timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            logger.error("Ledger call %s %s failed: %s", method, url, exc)
            raise LedgerSubmissionFailure(f"Ledger call {method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise LedgerSubmissionFailure(f"Invalid JSON from ledger at {path}: {exc}") from exc
