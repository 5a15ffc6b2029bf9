"""Hammer one game with concurrent ledger writes, then check its balance drift.

Exits non-zero when the materialized balance no longer matches a replay of
the game's entries, which would point at a lost update under concurrency.
"""

import argparse
import asyncio
import random
import statistics
import sys
import time
from collections import Counter
from uuid import uuid4

import httpx

KINDS = ("deposit", "redeem", "freeplay", "playedgame")
METHODS = ("cashapp", "paypal", "chime", "venmo")


def random_entry(idx: int, game: str) -> dict:
    kind = random.choice(KINDS)
    amount = float(random.randint(1, 500))
    return {
        "username": f"load-user-{idx % 20}",
        "kind": kind,
        "method": random.choice(METHODS) if kind in ("deposit", "redeem") else None,
        "game_name": game,
        "amount_base": amount,
        "amount_final": amount,
        "player_tag": f"tag-{idx % 50}",
    }


async def post_entry(client: httpx.AsyncClient, idx: int, game: str) -> tuple[int, float]:
    started = time.perf_counter()
    try:
        resp = await client.post("/entries", json=random_entry(idx, game), headers={"x-trace-id": str(uuid4())})
        status = resp.status_code
    except httpx.HTTPError:
        status = 599
    return status, (time.perf_counter() - started) * 1000


async def run(args) -> int:
    headers = {"x-api-key": args.api_key, "x-auth-user": "load-test"}
    gate = asyncio.Semaphore(args.concurrency)

    async with httpx.AsyncClient(base_url=args.base_url, headers=headers, timeout=10.0) as client:
        (await client.post("/games", json={"name": args.game})).raise_for_status()

        async def bounded(i: int):
            async with gate:
                return await post_entry(client, i, args.game)

        results = await asyncio.gather(*(bounded(i) for i in range(args.total)))
        drift = (await client.get(f"/games/{args.game}/drift")).raise_for_status().json()

    statuses = Counter(status for status, _ in results)
    latencies = sorted(latency for _, latency in results)
    cuts = statistics.quantiles(latencies, n=100) if len(latencies) > 1 else latencies * 99

    print(f"game={args.game} total={args.total}")
    print("statuses=" + " ".join(f"{code}:{count}" for code, count in sorted(statuses.items())))
    print(f"p50_ms={cuts[49]:.2f} p95_ms={cuts[94]:.2f} avg_ms={statistics.mean(latencies):.2f}")
    print(
        f"materialized={drift['materialized_total']} recomputed={drift['recomputed_total']} "
        f"drift={drift['drift']} entries={drift['entry_count']}"
    )
    return 1 if drift["has_drift"] else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--total", type=int, default=1000)
    parser.add_argument("--concurrency", type=int, default=50)
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--api-key", default="dev-secret")
    parser.add_argument("--game", default=f"load-{uuid4().hex[:8]}")
    sys.exit(asyncio.run(run(parser.parse_args())))
