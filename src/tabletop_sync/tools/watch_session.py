from __future__ import annotations

import argparse
import asyncio
import json
import logging
import time
from pathlib import Path
from typing import TextIO

from tabletop_sync.client.agent import ClientSyncAgent
from tabletop_sync.client.config import get_client_settings, resolve_ws_url
from tabletop_sync.protocol.messages import ClientRole


def _now_ms() -> int:
    return int(time.time() * 1000)


def _snapshot(agent: ClientSyncAgent) -> dict:
    return {
        "ts": _now_ms(),
        "status": agent.status.value,
        "lost": agent.connection_lost,
        "session": agent.session.model_dump(mode="json", by_alias=True, exclude_none=True),
    }


async def watch(ws_url: str | None, role: ClientRole, out: TextIO | None, *, echo: bool) -> None:
    """Join the relay and log every mirror/status change as one JSONL record."""
    last: dict[str, object] = {}

    def on_change() -> None:
        snap = _snapshot(agent)
        key = {k: snap[k] for k in ("status", "lost", "session")}
        if key == last:
            return
        last.clear()
        last.update(key)
        if echo:
            print(f"[watch] status={snap['status']} lost={snap['lost']} map={agent.session.map.name}")
        if out is not None:
            out.write(json.dumps(snap, ensure_ascii=False) + "\n")
            out.flush()

    agent = ClientSyncAgent(role, ws_url, on_change=on_change)
    await agent.start()
    try:
        await asyncio.Event().wait()
    finally:
        await agent.stop()


def main() -> None:
    ap = argparse.ArgumentParser(description="Follow a tabletop session and record changes as JSONL.")
    ap.add_argument("--ws", default=None, help="WebSocket URL, e.g. ws://127.0.0.1:8081/ws")
    ap.add_argument("--role", choices=("dm", "table"), default="table")
    ap.add_argument("--out", default=None, help="Output JSONL path")
    ap.add_argument("--print", action="store_true", help="Print changes to stdout")
    ap.add_argument("--debug", action="store_true", help="Verbose logging")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)
    ws_url = args.ws or resolve_ws_url(get_client_settings())

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("a", encoding="utf-8") as f:
            asyncio.run(watch(ws_url, args.role, f, echo=args.print))
    else:
        asyncio.run(watch(ws_url, args.role, None, echo=args.print))


if __name__ == "__main__":
    main()
