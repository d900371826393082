"""
Catalog reporting.

This module turns the clip catalog into a pandas DataFrame and summarizes
activity per time bucket (how many events, how long, how loud).

Single Responsibility: Catalog tabulation and report generation.
"""
from datetime import datetime
from typing import Sequence

import pandas as pd

from .catalog import ClipCatalogEntry

CATALOG_COLUMNS = [
    "entry_id",
    "start_timestamp",
    "duration_sec",
    "peak",
    "q1",
    "median",
    "q3",
    "clip_file",
]


def catalog_to_dataframe(entries: Sequence[ClipCatalogEntry]) -> pd.DataFrame:
    """
    Tabulate catalog entries.

    Args:
        entries: Catalog entries

    Returns:
        DataFrame with one row per clip, ordered by start time
    """
    if not entries:
        return pd.DataFrame(columns=CATALOG_COLUMNS)

    rows = [
        {
            "entry_id": e.entry_id,
            "start_timestamp": e.started_at,
            "duration_sec": e.duration,
            "peak": e.stats.max,
            "q1": e.stats.q1,
            "median": e.stats.median,
            "q3": e.stats.q3,
            "clip_file": str(e.path),
        }
        for e in entries
    ]
    df = pd.DataFrame(rows, columns=CATALOG_COLUMNS)
    return df.sort_values("start_timestamp", kind="stable").reset_index(drop=True)


def activity_summary(df: pd.DataFrame, freq: str = "1h") -> pd.DataFrame:
    """
    Bucket clips by start time.

    Args:
        df: Output of catalog_to_dataframe
        freq: pandas offset alias for the bucket size

    Returns:
        DataFrame indexed by bucket start with columns
        events, total_duration_sec, max_peak. Buckets without clips are
        included (as zero events) between the first and last bucket.
    """
    if df.empty:
        return pd.DataFrame(columns=["events", "total_duration_sec", "max_peak"])

    grouped = df.set_index(pd.to_datetime(df["start_timestamp"])).resample(freq)
    summary = pd.DataFrame({
        "events": grouped["entry_id"].count(),
        "total_duration_sec": grouped["duration_sec"].sum(),
        "max_peak": grouped["peak"].max(),
    })
    summary["max_peak"] = summary["max_peak"].fillna(0.0)
    summary.index.name = "bucket_start"
    return summary


def generate_activity_report(df: pd.DataFrame, freq: str = "1h") -> str:
    """
    Generate a plain-text activity report.

    Args:
        df: Output of catalog_to_dataframe
        freq: Bucket size for the per-period table

    Returns:
        Formatted report text
    """
    lines = []
    lines.append("Bark Activity Report")
    lines.append("=" * 60)
    lines.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append("")

    if df.empty:
        lines.append("No clips recorded.")
        return "\n".join(lines)

    first = pd.to_datetime(df["start_timestamp"]).min()
    last = pd.to_datetime(df["start_timestamp"]).max()
    lines.append(f"Period: {first.strftime('%Y-%m-%d %H:%M:%S')} to {last.strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append(f"Total clips: {len(df)}")
    lines.append(f"Total event time: {df['duration_sec'].sum():.1f}s")
    lines.append(f"Longest clip: {df['duration_sec'].max():.1f}s")
    lines.append(f"Loudest peak: {df['peak'].max():.3f}")
    lines.append("")

    summary = activity_summary(df, freq)
    lines.append(f"{'Period start':<20} {'Events':>7} {'Seconds':>9} {'Max peak':>9}")
    lines.append("-" * 60)
    for bucket, row in summary.iterrows():
        lines.append(
            f"{bucket.strftime('%Y-%m-%d %H:%M'):<20} {int(row['events']):>7} "
            f"{row['total_duration_sec']:>9.1f} {row['max_peak']:>9.3f}"
        )

    lines.append("")
    lines.append("=" * 60)
    return "\n".join(lines)
