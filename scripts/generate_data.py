"""
Drop-file generator for the promotions storage service.

Writes deterministic pseudo-random promotion lines in the drop-file format,
optionally sprinkling malformed lines, straight into the watched directory.
Lines are flushed in batches, so the watcher sees a burst of modify events
for one file, the situation its debounce exists for.
"""

from __future__ import annotations

import random
import sys
import time
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List

import typer

from promo_storage.config import get_settings

app = typer.Typer(help="Generate synthetic promotion drop files.")

_MALFORMED_LINES = [
    "not-a-uuid,1.00,2030-01-01 00:00:00 +0000 UTC",
    "{id},-3.50,2030-01-01 00:00:00 +0000 UTC",
    "{id},abc,2030-01-01 00:00:00 +0000 UTC",
    "{id},9.99,01/01/2030",
    "{id},9.99",
]


def _format_expiration(moment: datetime) -> str:
    offset_hours = int(moment.utcoffset().total_seconds() // 3600)
    zone = "UTC" if offset_hours == 0 else f"{offset_hours:+03d}"
    return f"{moment:%Y-%m-%d %H:%M:%S %z} {zone}"


def _generate_lines(rows: int, seed: int, malformed_ratio: float) -> List[str]:
    rng = random.Random(seed)
    base = datetime(2030, 1, 1, tzinfo=timezone.utc)
    lines: List[str] = []
    for _ in range(rows):
        promotion_id = uuid.UUID(int=rng.getrandbits(128), version=4)
        if rng.random() < malformed_ratio:
            lines.append(rng.choice(_MALFORMED_LINES).format(id=promotion_id))
            continue
        price = rng.uniform(0.5, 500)
        offset = timezone(timedelta(hours=rng.choice([-5, 0, 2])))
        expiration = (base + timedelta(minutes=rng.randint(0, 525_600))).astimezone(offset)
        lines.append(f"{promotion_id},{price:.2f},{_format_expiration(expiration)}")
    return lines


def _write_drop_file(csv_path: Path, lines: List[str], batch_size: int) -> None:
    with csv_path.open("w", encoding="utf-8") as f:
        for start in range(0, len(lines), batch_size):
            f.write("\n".join(lines[start : start + batch_size]) + "\n")
            f.flush()


@app.command()
def main(
    rows: int = typer.Option(10_000, "--rows", "-r", help="Number of lines to generate."),
    batch_size: int = typer.Option(
        1_000, "--batch-size", "-b", help="Lines written per flush."
    ),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    malformed_ratio: float = typer.Option(
        0.0, "--malformed-ratio", help="Share of lines written malformed (0..1)."
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Drop file path (default: promotions-<timestamp>.csv in INPUT_DIR).",
    ),
) -> None:
    """
    Generate a promotion drop file.
    """
    start = time.perf_counter()
    if output:
        csv_path = output
    else:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        csv_path = get_settings().resolved_input_dir / f"promotions-{stamp}.csv"
    csv_path.parent.mkdir(parents=True, exist_ok=True)

    typer.echo(f"Generating {rows:,} lines -> {csv_path} (seed={seed})")
    _write_drop_file(csv_path, _generate_lines(rows, seed, malformed_ratio), batch_size)
    duration = time.perf_counter() - start
    typer.echo(f"Drop file written in {duration:.2f}s")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
