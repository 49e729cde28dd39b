# tea_inventory/cli.py
"""
Command line entry point: ``tea-inventory <command>``.

    init-db       create the database tables
    seed          create the default accounts (and, optionally, sample data)
    fix-imports   move enum imports from the ORM module to the constants module
    serve         run the API with uvicorn
"""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from .config import settings
from .logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def _cmd_init_db(args: argparse.Namespace) -> int:
    from .db import init_db

    init_db()
    return 0


def _cmd_seed(args: argparse.Namespace) -> int:
    from .db import SessionLocal, init_db
    from .seed import run_seed

    init_db()
    db = SessionLocal()
    try:
        run_seed(db, with_samples=args.samples)
    finally:
        db.close()
    return 0


def _cmd_fix_imports(args: argparse.Namespace) -> int:
    from .tools.fix_imports import fix_tree

    changed = fix_tree(
        args.root,
        client_module=args.client_module,
        constants_module=args.constants_module,
    )
    for path in changed:
        print(f"Fixed imports in: {path}")
    print("Import fixes completed!")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "tea_inventory.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_config=None,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    from .tools.fix_imports import DEFAULT_CLIENT_MODULE, DEFAULT_CONSTANTS_MODULE

    ap = argparse.ArgumentParser(prog="tea-inventory", description="Tea Inventory System backend.")
    ap.add_argument("--log-level", default=None, help="Override TEA_INVENTORY_LOG_LEVEL.")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create database tables.")
    p.set_defaults(func=_cmd_init_db)

    p = sub.add_parser("seed", help="Create default users.")
    p.add_argument("--samples", action="store_true", help="Also add a small sample catalogue.")
    p.set_defaults(func=_cmd_seed)

    p = sub.add_parser("fix-imports", help="Rewrite enum imports under a source tree.")
    p.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Import root to scan; subdirectories map to package names (default: current).",
    )
    p.add_argument("--client-module", default=DEFAULT_CLIENT_MODULE)
    p.add_argument("--constants-module", default=DEFAULT_CONSTANTS_MODULE)
    p.set_defaults(func=_cmd_fix_imports)

    p = sub.add_parser("serve", help="Run the HTTP API.")
    p.add_argument("--host", default=settings.host)
    p.add_argument("--port", type=int, default=settings.port)
    p.add_argument("--reload", action="store_true")
    p.set_defaults(func=_cmd_serve)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level)
    logger.debug("Running command %s", args.command)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
