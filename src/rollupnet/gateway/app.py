from __future__ import annotations

"""
Ledger HTTP Gateway

Serves an InMemoryLedger over HTTP so an operator process can run against
it through HTTPLedgerClient.

  GET  /healthz
  GET  /root               {"root": "<decimal>", "nextBatch": <int>}
  POST /process-deposits   BatchCommitRequest JSON -> LedgerReceipt JSON
  POST /deposits           {"pubKey": [x, y], "amount": n, "tokenType": t}
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request

from rollupnet.ledger.inprocess import InMemoryLedger
from rollupnet.protocol.errors import ValidationError
from rollupnet.protocol.models import BatchCommitRequest, DepositRequest

logger = logging.getLogger(__name__)


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Body must be JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")
    return body


def create_ledger_app(ledger: InMemoryLedger) -> FastAPI:
    app = FastAPI(title="rollupnet ledger", version="0.1.0")
    app.state.ledger = ledger

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/root")
    async def root() -> Dict[str, Any]:
        return {"root": str(ledger.root), "nextBatch": ledger.next_batch}

    @app.post("/process-deposits")
    async def process_deposits(request: Request) -> Dict[str, Any]:
        body = await _read_json(request)
        try:
            commit = BatchCommitRequest.from_dict(body)
        except (KeyError, TypeError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=f"Malformed commit request: {exc}")

        receipt = await ledger.submit(commit)
        return receipt.to_dict()

    @app.post("/deposits")
    async def deposits(request: Request) -> Dict[str, Any]:
        body = await _read_json(request)
        try:
            deposit = DepositRequest.from_dict(body)
            ledger.request_deposit(deposit.pubkey, deposit.amount, deposit.token_type)
        except (KeyError, TypeError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=f"Malformed deposit: {exc}")
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
        return {"accepted": True, "deposit": deposit.to_dict()}

    return app
