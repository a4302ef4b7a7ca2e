#!/usr/bin/env python3
"""
Validate the candle endpoints of a running server.

Checks performed:
- HTTP 200 and JSON array
- Every item parses as a Candle (OHLC consistency, non-negative values)
- Timestamps strictly increasing (oldest -> newest)
- For /history: constant step equal to the timeframe length, and a warning
  when fewer than `limit` candles come back (newly listed symbols)

Usage examples:
  python scripts/validate_history.py --symbol BTCUSDT --timeframe 1h --limit 100
  python scripts/validate_history.py --endpoint klines --symbol ETHUSDT --timeframe 5m --limit 50
"""

import argparse
import sys

import httpx
from pydantic import ValidationError

from core.schemas import Candle, validate_candle_sequence
from core.utils.timeframes import timeframe_to_ms


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Validate candle endpoint responses.")
    p.add_argument("--host", default="localhost", help="Server host (default: localhost)")
    p.add_argument("--port", type=int, default=8000, help="Server port (default: 8000)")
    p.add_argument("--endpoint", choices=["history", "klines"], default="history")
    p.add_argument("--symbol", required=True, help="Symbol (e.g., BTCUSDT)")
    p.add_argument("--timeframe", default="1h", help="Timeframe / interval (e.g., 1m, 5m, 1h, 4h, 1d)")
    p.add_argument("--limit", type=int, default=100, help="Number of candles to request")
    p.add_argument("--print-sample", type=int, default=0, help="Print first N items for visual inspection")
    return p.parse_args()


def main() -> int:
    args = parse_args()
    param = "timeframe" if args.endpoint == "history" else "interval"
    url = f"http://{args.host}:{args.port}/{args.endpoint}/{args.symbol}"
    print(f"[Info] Requesting: {url}?{param}={args.timeframe}&limit={args.limit}")

    try:
        resp = httpx.get(url, params={param: args.timeframe, "limit": args.limit}, timeout=30.0)
    except httpx.HTTPError as e:
        print(f"[Error] Request failed: {e}")
        return 2

    if resp.status_code != 200:
        print(f"[Error] HTTP {resp.status_code}: {resp.text[:300]}")
        return 2

    try:
        data = resp.json()
    except ValueError as e:
        print(f"[Error] Invalid JSON: {e}")
        return 2

    if not isinstance(data, list):
        print("[Error] Response is not a list")
        return 2

    candles = []
    for idx, item in enumerate(data):
        try:
            candles.append(Candle.model_validate(item))
        except ValidationError as e:
            print(f"[Error] Item {idx} invalid: {e}")
            return 1

    step = timeframe_to_ms(args.timeframe) if args.endpoint == "history" else None
    try:
        validate_candle_sequence(candles, step_ms=step)
    except ValueError as e:
        print(f"[Error] Ordering check failed: {e}")
        return 1

    if args.endpoint == "history" and len(candles) != args.limit:
        print(f"[Warn] Expected {args.limit} candles, got {len(candles)}")

    if args.print_sample > 0:
        sample = data[: args.print_sample]
        print(f"[Info] Sample ({len(sample)} of {len(data)}):")
        for it in sample:
            print(it)

    print(f"[OK] Validated {len(candles)} candles for {args.symbol.upper()} {args.timeframe}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
