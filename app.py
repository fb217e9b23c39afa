from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Optional

import uvicorn

from toggles.core.config import build_store, load_config, write_default_config
from toggles.core.errors import ToggleError
from toggles.core.logger import setup_logging
from toggles.core.sync import BackgroundSync
from toggles.web.api import create_app


def main(argv: Optional[list] = None) -> int:
    ap = argparse.ArgumentParser(description="Toggle store with background sync and an admin API")
    ap.add_argument("--config", default=os.path.join("config", "toggles.json"), help="Path to the JSON config file.")
    ap.add_argument("--init-config", action="store_true", help="Write a default config file and exit.")
    ap.add_argument("--once", action="store_true", help="Reload once, print the current values and exit.")
    ap.add_argument("--host", default=None, help="Override web.bind_host.")
    ap.add_argument("--port", type=int, default=None, help="Override web.port.")
    args = ap.parse_args(argv)

    if args.init_config:
        if os.path.exists(args.config):
            print(f"{args.config} already exists.", file=sys.stderr)
            return 1
        write_default_config(args.config)
        print(f"Wrote {args.config}")
        return 0

    try:
        cfg = load_config(args.config)
    except ToggleError as e:
        print(str(e), file=sys.stderr)
        return 2

    logger = setup_logging(cfg.logging.log_dir, cfg.logging.level)
    try:
        store = build_store(cfg, logger=logger)
    except ToggleError as e:
        logger.error(f"Unable to build toggle store: {e}")
        return 2

    if args.once:
        try:
            store.reload()
        except ToggleError as e:
            logger.error(f"Reload failed: {e}")
            return 1
        print(json.dumps({v.key: v.value for v in store.definitions()}, indent=2, sort_keys=True))
        return 0

    sync: Optional[BackgroundSync] = None
    if cfg.sync.enabled:
        sync = BackgroundSync(
            store,
            ok_interval=cfg.sync.ok_interval_seconds,
            err_interval=cfg.sync.err_interval_seconds,
            logger=logger,
        )
        if not sync.start(timeout=cfg.sync.start_timeout_seconds):
            logger.warning("First toggle reload did not succeed; serving defaults or last known values.")
    else:
        try:
            store.reload()
        except ToggleError as e:
            logger.warning(f"Initial reload failed: {e}")

    try:
        if not cfg.web.enabled:
            logger.info("Web admin disabled; nothing left to run.")
            return 0
        host = args.host or cfg.web.bind_host
        port = args.port or cfg.web.port
        logger.info(f"Admin API on http://{host}:{port}")
        uvicorn.run(create_app(store, logger=logger, sync=sync), host=host, port=port, log_level="info")
    finally:
        if sync is not None:
            sync.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
