# scripts/summarize_logs.py
# Prints per-endpoint request counts, error rates and latencies from the
# request log list the API pushes to Redis.
import json
import logging
import os
import sys
from collections import Counter, defaultdict

import redis

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, project_root)

from config import config

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("summarize_logs")


def get_redis_logs(redis_client, limit: int = config.MAX_LOG_ENTRIES) -> list[dict]:
    """Fetches and decodes the newest ``limit`` log entries; bad entries are skipped."""
    entries = []
    for raw in redis_client.lrange(config.API_LOG_KEY, 0, limit - 1):
        try:
            entries.append(json.loads(raw))
        except (TypeError, ValueError):
            logger.warning(f"Skipping undecodable log entry: {raw[:80]!r}")
    return entries


def _percentile(values: list[float], pct: float) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    index = min(len(ordered) - 1, int(round(pct / 100 * (len(ordered) - 1))))
    return ordered[index]


def summarize(entries: list[dict]) -> dict:
    """
    Groups entries by endpoint. For each: request count, share of responses
    with status >= 400, median and p95 latency and the most common outcomes.
    """
    by_endpoint = defaultdict(list)
    for entry in entries:
        by_endpoint[entry.get("endpoint", "?")].append(entry)

    summary = {}
    for endpoint, items in by_endpoint.items():
        latencies = [float(i.get("time_elapsed_ms") or 0) for i in items]
        errors = sum(1 for i in items if int(i.get("status_code") or 0) >= 400)
        outcomes = Counter(i.get("outcome", "unknown") for i in items)
        summary[endpoint] = {
            "count": len(items),
            "error_rate": round(errors / len(items), 3),
            "p50_ms": round(_percentile(latencies, 50), 2),
            "p95_ms": round(_percentile(latencies, 95), 2),
            "top_outcomes": outcomes.most_common(3),
        }
    return summary


def print_summary(summary: dict) -> None:
    print(f"{'endpoint':<45} {'count':>6} {'err%':>6} {'p50ms':>9} {'p95ms':>9}  outcomes")
    for endpoint, row in sorted(summary.items(), key=lambda kv: kv[1]["count"], reverse=True):
        outcomes = ", ".join(f"{name}={n}" for name, n in row["top_outcomes"])
        print(
            f"{endpoint:<45} {row['count']:>6} {row['error_rate'] * 100:>5.1f}% "
            f"{row['p50_ms']:>9} {row['p95_ms']:>9}  {outcomes}"
        )


if __name__ == "__main__":
    limit = int(sys.argv[1]) if len(sys.argv) > 1 else config.MAX_LOG_ENTRIES
    try:
        client = redis.from_url(config.REDIS_URL, decode_responses=True)
        logs = get_redis_logs(client, limit)
    except redis.exceptions.RedisError as e:
        logger.error(f"Error fetching logs from Redis: {e}")
        sys.exit(1)
    if not logs:
        print("No log entries found.")
        sys.exit(0)
    print_summary(summarize(logs))
