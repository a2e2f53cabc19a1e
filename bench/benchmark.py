#!/usr/bin/env python3
"""
Load benchmark for the leaderboard endpoint.

Reads a YAML profile (see config.yaml) with one or more runs, each hitting the
endpoint with GET or POST at several concurrency levels. Writes:
  - <run>_raw.csv      one row per request
  - <run>_summary.csv  one row per concurrency level
  - combined_summary.csv
"""

import argparse
import asyncio
import csv
import os
import sys
import time
import uuid
from collections import Counter
from statistics import mean

import aiohttp
import yaml

RAW_FIELDS = ["run_label", "concurrency", "req_id", "ok", "status", "latency_ms"]
SUMMARY_FIELDS = [
    "run_label", "concurrency", "requests", "ok", "errors", "rate_limited",
    "elapsed_s", "throughput_rps", "latency_avg_ms",
    "latency_p50_ms", "latency_p95_ms", "latency_p99_ms",
]


# ------------------------------------------------------------
# Helper functions
def percentile(values, p):
    if not values:
        return float("nan")
    arr = sorted(values)
    k = (len(arr) - 1) * (p / 100.0)
    f = int(k)
    c = min(f + 1, len(arr) - 1)
    if f == c:
        return arr[f]
    return arr[f] + (arr[c] - arr[f]) * (k - f)


def load_yaml(path):
    with open(path, "r") as f:
        return yaml.safe_load(f)


def request_body(run, req_id):
    body = dict(run.get("json_body") or {})
    if run.get("unique_names"):
        # names are capped at 40 chars server side
        body["name"] = f"{body.get('name', 'bench')}-{req_id[:12]}"
    return body


def summarize(results, concurrency, elapsed):
    latencies = [r["latency_ms"] for r in results]
    statuses = Counter(r["status"] for r in results)
    ok_count = sum(1 for r in results if r["ok"])
    return {
        "concurrency": concurrency,
        "requests": len(results),
        "ok": ok_count,
        "errors": len(results) - ok_count,
        "rate_limited": statuses.get(429, 0),
        "elapsed_s": elapsed,
        "throughput_rps": ok_count / elapsed if elapsed > 0 else 0.0,
        "latency_avg_ms": mean(latencies) if latencies else float("nan"),
        "latency_p50_ms": percentile(latencies, 50),
        "latency_p95_ms": percentile(latencies, 95),
        "latency_p99_ms": percentile(latencies, 99),
    }


# ------------------------------------------------------------
async def one_request(session, url, method, json_body, timeout_s):
    t0 = time.perf_counter()
    try:
        async with session.request(method, url, json=json_body,
                                   timeout=aiohttp.ClientTimeout(total=timeout_s)) as resp:
            await resp.read()
            t1 = time.perf_counter()
            return {
                "ok": (200 <= resp.status < 300),
                "status": resp.status,
                "latency_ms": (t1 - t0) * 1000.0,
            }
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        t1 = time.perf_counter()
        return {"ok": False, "status": -1, "latency_ms": (t1 - t0) * 1000.0, "error": str(e)}


async def run_level(session, url, run, timeout_s, concurrency, total_requests, writer):
    method = run.get("method", "GET").upper()
    sem = asyncio.Semaphore(concurrency)
    results = []
    t_start = time.perf_counter()

    async def worker(req_id):
        async with sem:
            body = request_body(run, req_id) if method == "POST" else None
            res = await one_request(session, url, method, body, timeout_s)
            results.append(res)
            writer.writerow({
                "run_label": run["name"],
                "concurrency": concurrency,
                "req_id": req_id,
                "ok": int(res["ok"]),
                "status": res["status"],
                "latency_ms": f"{res['latency_ms']:.3f}",
            })

    tasks = [asyncio.create_task(worker(uuid.uuid4().hex)) for _ in range(total_requests)]
    await asyncio.gather(*tasks)

    return summarize(results, concurrency, time.perf_counter() - t_start)


def write_summary(path, rows):
    with open(path, "w", newline="") as f:
        w = csv.DictWriter(f, fieldnames=SUMMARY_FIELDS)
        w.writeheader()
        for s in rows:
            w.writerow(s)


# ------------------------------------------------------------
async def main(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("-c", "--config", default="config.yaml")
    ap.add_argument("-u", "--url", default=None, help="override target_url")
    args = ap.parse_args(argv)

    cfg = load_yaml(args.config)
    url = args.url or cfg["target_url"]
    outdir = cfg.get("output_dir", "./bench_runs")
    os.makedirs(outdir, exist_ok=True)
    timeout_s = float(cfg.get("timeout_seconds", 30.0))

    all_rows = []
    async with aiohttp.ClientSession() as session:
        for run in cfg["runs"]:
            name = run["name"]
            conc_levels = run.get("concurrency_levels", cfg.get("concurrency_levels", [1, 2, 4, 8]))
            per_level = int(run.get("requests_per_level", cfg.get("requests_per_level", 100)))
            print(f"[run:{name}] -> {url} ({run.get('method', 'GET').upper()})")

            raw_path = os.path.join(outdir, f"{name}_raw.csv")
            summaries = []
            with open(raw_path, "w", newline="") as fraw:
                writer = csv.DictWriter(fraw, fieldnames=RAW_FIELDS)
                writer.writeheader()
                for c in conc_levels:
                    print(f"  [concurrency={c}] running {per_level} requests ...")
                    s = await run_level(session, url, run, timeout_s, c, per_level, writer)
                    s["run_label"] = name
                    summaries.append(s)
                    print(f"    throughput={s['throughput_rps']:.2f} rps, "
                          f"p95={s['latency_p95_ms']:.1f} ms, 429s={s['rate_limited']}")

            write_summary(os.path.join(outdir, f"{name}_summary.csv"), summaries)
            all_rows.extend(summaries)

    combined_path = os.path.join(outdir, "combined_summary.csv")
    write_summary(combined_path, all_rows)
    print(f"\n[saved] combined_summary.csv -> {combined_path}")


# ------------------------------------------------------------
if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        sys.exit(1)
