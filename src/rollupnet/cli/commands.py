"""
rollupnet CLI commands.

Commands:
    rollupnet zero-cache [--depth D]           Print the zero-subtree cache
    rollupnet simulate --deposits N            Run deposits through a ledger
    rollupnet serve-ledger [--host --port]     Serve an in-memory ledger over HTTP
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, Dict, Optional

from rollupnet.core.settings import get_settings
from rollupnet.events.processor import DepositProcessor
from rollupnet.events.source import QueueEventSource
from rollupnet.ledger.base import ExternalLedger
from rollupnet.ledger.http import HTTPLedgerClient
from rollupnet.ledger.inprocess import InMemoryLedger
from rollupnet.ledger.signing import OperatorSigner, OperatorVerifier
from rollupnet.merkle.batch import BatchAccumulator
from rollupnet.merkle.config import AccumulatorConfig
from rollupnet.merkle.tree import build_zero_cache
from rollupnet.protocol.errors import ValidationError
from rollupnet.protocol.models import DepositRequest

_MAX_DEPTH = 32


def _config_from_args(args) -> AccumulatorConfig:
    tree = get_settings().tree
    depth = getattr(args, "depth", None)
    exponent = getattr(args, "batch_exponent", None)
    return AccumulatorConfig(
        depth=tree.depth if depth is None else depth,
        batch_exponent=tree.batch_exponent if exponent is None else exponent,
    )


def _config_or_exit(args) -> AccumulatorConfig:
    try:
        return _config_from_args(args)
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)


def _synthetic_deposit(i: int) -> DepositRequest:
    return DepositRequest(pubkey=(i + 1, i + 1001), amount=10 * (i + 1), token_type=0)


def cmd_zero_cache(args) -> None:
    """Print the zero-subtree hash at every level, root first."""
    depth = args.depth if args.depth is not None else get_settings().tree.depth
    if depth < 1 or depth > _MAX_DEPTH:
        print(f"Invalid configuration: depth must be between 1 and {_MAX_DEPTH}", file=sys.stderr)
        sys.exit(1)
    cache = build_zero_cache(depth)
    print(json.dumps({
        "depth": depth,
        "zeroCache": [str(h) for h in cache],
    }, indent=2))


async def simulate(
    config: AccumulatorConfig,
    count: int,
    *,
    sign: bool = False,
    ledger_url: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run ``count`` synthetic deposits through a processor and accumulator.

    Against the in-memory ledger the deposits enter as ledger events, the
    same path a contract subscription takes; against a remote ledger they
    are published straight into the channel.
    """
    signer = None
    if sign:
        key_file = get_settings().ledger.operator_key_file
        signer = OperatorSigner.from_pem_file(key_file) if key_file else OperatorSigner.generate()
    source = QueueEventSource()

    if ledger_url:
        ledger: ExternalLedger = HTTPLedgerClient(
            ledger_url, timeout=get_settings().ledger.timeout
        )
        local_ledger = None
    else:
        verifier = None
        if signer is not None:
            verifier = OperatorVerifier()
            verifier.add_from_signer(signer)
        local_ledger = InMemoryLedger(config, verifier=verifier)
        local_ledger.subscribe(source.publish)
        ledger = local_ledger

    accumulator = BatchAccumulator(config, ledger, signer)
    processor = DepositProcessor(source, accumulator)
    task = processor.start()

    for i in range(count):
        deposit = _synthetic_deposit(i)
        if local_ledger is not None:
            local_ledger.request_deposit(deposit.pubkey, deposit.amount, deposit.token_type)
        else:
            source.publish(deposit)
    source.close()
    stats = await task

    return {
        "admitted": stats.admitted,
        "pending": accumulator.pending_count,
        "batchIndex": accumulator.batch_index,
        "localRoot": str(accumulator.root),
        "ledgerRoot": str(await ledger.current_root()),
        "commits": [c.to_dict() for c in stats.committed],
        "errors": [f"{type(e).__name__}: {e}" for e in stats.errors],
    }


def cmd_simulate(args) -> None:
    """Feed N synthetic deposits through the accumulator and print every commit."""
    config = _config_or_exit(args)
    result = asyncio.run(
        simulate(
            config,
            args.deposits,
            sign=args.sign,
            ledger_url=args.ledger_url or get_settings().ledger.url,
        )
    )
    print(json.dumps(result, indent=2))
    if result["errors"]:
        sys.exit(2)


def cmd_serve_ledger(args) -> None:
    """Serve an in-memory ledger over HTTP with uvicorn."""
    import uvicorn

    from rollupnet.gateway.app import create_ledger_app

    settings = get_settings()
    app = create_ledger_app(InMemoryLedger(_config_or_exit(args)))
    uvicorn.run(
        app,
        host=args.host or settings.runtime.host,
        port=args.port or settings.runtime.port,
        log_level=settings.runtime.log_level.lower(),
    )
