"""Metrics exporter for observability."""
import time
from pathlib import Path
from typing import Dict, Optional

import aiofiles
import orjson

from restock.config import DATA_DIR

METRICS_FILE = DATA_DIR / "metrics.jsonl"


class MetricsExporter:
    """Appends one JSON line of metrics per monitor cycle."""

    def __init__(self, run_id: str, metrics_file: Optional[Path] = None):
        self.run_id = run_id
        self.metrics_file = Path(metrics_file or METRICS_FILE)
        self.start_time = time.time()

    async def export_metrics(self, summary: Dict, units_by_product: Optional[Dict[str, int]] = None) -> None:
        """Export metrics to JSONL file."""
        metrics = {
            "ts": time.time(),
            "run_id": self.run_id,
            "uptime_seconds": round(time.time() - self.start_time, 1),
            **{key: round(value, 3) if isinstance(value, float) else value for key, value in summary.items()},
        }
        if units_by_product is not None:
            metrics["units_by_product"] = units_by_product

        line = orjson.dumps(metrics) + b"\n"
        async with aiofiles.open(self.metrics_file, "ab") as f:
            await f.write(line)
