#!/usr/bin/env python3
"""Plot combined_summary.csv from benchmark.py."""
import argparse
import os

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402
import seaborn as sns  # noqa: E402

sns.set(style="whitegrid", font_scale=1.2)

METRICS = [
    ("throughput_rps", "Throughput (req/s)", "Throughput vs Concurrency"),
    ("latency_avg_ms", "Average Latency (ms)", "Average Latency vs Concurrency"),
    ("latency_p95_ms", "P95 Latency (ms)", "95th Percentile Latency vs Concurrency"),
    ("latency_p99_ms", "P99 Latency (ms)", "99th Percentile Latency vs Concurrency"),
    ("rate_limited_share", "Share of 429 responses", "Cooldown Rejections vs Concurrency"),
]


def load_summary(path):
    df = pd.read_csv(path)
    df["rate_limited_share"] = df["rate_limited"] / df["requests"].clip(lower=1)
    return df


def plot_metric(df, metric, ylabel, title, outfile):
    plt.figure(figsize=(8, 6))
    sns.lineplot(
        data=df, x="concurrency", y=metric, hue="run_label", marker="o", linewidth=2
    )
    plt.title(title)
    plt.xlabel("Concurrency Level")
    plt.ylabel(ylabel)
    plt.legend(title="Run", loc="best")
    plt.tight_layout()
    plt.savefig(outfile, dpi=160)
    print(f"[saved] {outfile}")
    plt.close()


def main(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("--csv", default="./bench_runs/combined_summary.csv")
    ap.add_argument("--outdir", default="./bench_plots")
    args = ap.parse_args(argv)
    os.makedirs(args.outdir, exist_ok=True)

    df = load_summary(args.csv)
    for metric, ylabel, title in METRICS:
        plot_metric(df, metric, ylabel, title, os.path.join(args.outdir, f"{metric}.png"))


if __name__ == "__main__":
    main()
