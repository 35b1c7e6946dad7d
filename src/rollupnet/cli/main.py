# rollupnet/cli/main.py

"""
rollupnet CLI Tool
------------------

Provides:
  - Zero-subtree cache inspection
  - Local batch simulation (in-memory or remote ledger)
  - An HTTP ledger server for integration runs
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from rollupnet.cli.commands import cmd_serve_ledger, cmd_simulate, cmd_zero_cache
from rollupnet.core.settings import get_settings
from rollupnet.utils.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rollupnet",
        description="Account tree and batch deposit operator",
    )
    parser.add_argument("--log-level", default=None, help="Override ROLLUPNET_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command")

    p_zero = sub.add_parser("zero-cache", help="Print the zero-subtree cache")
    p_zero.add_argument("--depth", type=int, default=None, help="Tree depth D")
    p_zero.set_defaults(func=cmd_zero_cache)

    p_sim = sub.add_parser("simulate", help="Run synthetic deposits through a ledger")
    p_sim.add_argument("--deposits", type=int, required=True, help="Number of deposits")
    p_sim.add_argument("--depth", type=int, default=None, help="Tree depth D")
    p_sim.add_argument("--batch-exponent", type=int, default=None, help="Batch size exponent k")
    p_sim.add_argument("--sign", action="store_true", help="Sign commit requests")
    p_sim.add_argument("--ledger-url", default=None, help="Remote ledger base URL")
    p_sim.set_defaults(func=cmd_simulate)

    p_serve = sub.add_parser("serve-ledger", help="Serve an in-memory ledger over HTTP")
    p_serve.add_argument("--host", default=None)
    p_serve.add_argument("--port", type=int, default=None)
    p_serve.add_argument("--depth", type=int, default=None, help="Tree depth D")
    p_serve.add_argument("--batch-exponent", type=int, default=None, help="Batch size exponent k")
    p_serve.set_defaults(func=cmd_serve_ledger)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    configure_logging(args.log_level or get_settings().runtime.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
