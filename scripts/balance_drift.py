"""Print materialized-vs-replayed coin balance drift for every registered game."""

import argparse
import json

import httpx


def main() -> None:
    """CLI entrypoint for game balance drift checks."""

    parser = argparse.ArgumentParser(description="Check game balance drift via the ledger API.")
    parser.add_argument("--ledger-url", default="http://localhost:8000")
    parser.add_argument("--api-key", required=True)
    parser.add_argument("--only-drift", action="store_true", help="print games with drift only")
    parser.add_argument("--rebuild", action="store_true", help="rebuild every drifting game balance")
    args = parser.parse_args()

    headers = {"x-api-key": args.api_key, "x-auth-user": "balance-drift-script"}
    with httpx.Client(base_url=args.ledger_url, headers=headers, timeout=10.0) as client:
        resp = client.get("/games")
        resp.raise_for_status()
        reports = []
        for game in resp.json():
            drift = client.get(f"/games/{game['name']}/drift")
            drift.raise_for_status()
            report = drift.json()
            if args.only_drift and not report["has_drift"]:
                continue
            if args.rebuild and report["has_drift"]:
                rebuilt = client.post(f"/games/{game['name']}/rebuild")
                rebuilt.raise_for_status()
                report["rebuilt_total"] = rebuilt.json()["total_coins"]
            reports.append(report)
    print(json.dumps(reports, indent=2))


if __name__ == "__main__":
    main()
