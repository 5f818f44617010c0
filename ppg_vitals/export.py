"""
CSV export of a recorded session.

Two files are produced per recording:

``<prefix>_IBI_data.csv``
    ``IBI, bpmSD, Smoothed IBI, Smoothed BPM, SBP, DBP, SBP_Avg, DBP_Avg,
    Timestamp`` – one row per processed sample.
``<prefix>_Green.csv``
    ``Green, Timestamp`` – the conditioned proxy trace.

Numbers are written with two decimals and timestamps as local
``HH:MM:SS.mmm``.
"""

from __future__ import annotations

import csv
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .session import PpgResult, Session

logger = logging.getLogger(__name__)

IBI_HEADERS = [
    "IBI", "bpmSD", "Smoothed IBI", "Smoothed BPM",
    "SBP", "DBP", "SBP_Avg", "DBP_Avg", "Timestamp",
]
PROXY_HEADERS = ["Green", "Timestamp"]


@dataclass(frozen=True)
class IbiRow:
    ibi: float
    bpm_sd: float
    smoothed_ibi: float
    smoothed_bpm: float
    sbp: float
    dbp: float
    sbp_avg: float
    dbp_avg: float
    timestamp_ms: float


def format_timestamp(timestamp_ms: float) -> str:
    """Epoch milliseconds → local ``HH:MM:SS.mmm``."""
    ms = int(timestamp_ms) % 1000
    return datetime.fromtimestamp(timestamp_ms / 1000.0).strftime("%H:%M:%S") + f".{ms:03d}"


def save_ibi_csv(path: Union[str, Path], rows: Sequence[IbiRow]) -> Path:
    path = Path(path)
    with path.open("w", newline="") as fh:
        writer = csv.writer(fh)
        writer.writerow(IBI_HEADERS)
        for r in rows:
            writer.writerow([
                f"{r.ibi:.2f}",
                f"{r.bpm_sd:.2f}",
                f"{r.smoothed_ibi:.2f}",
                f"{r.smoothed_bpm:.2f}",
                f"{r.sbp:.2f}",
                f"{r.dbp:.2f}",
                f"{r.sbp_avg:.2f}",
                f"{r.dbp_avg:.2f}",
                format_timestamp(r.timestamp_ms),
            ])
    logger.info("Wrote %d IBI rows to %s", len(rows), path)
    return path


def save_proxy_csv(
    path: Union[str, Path],
    values: Sequence[float],
    timestamps_ms: Sequence[float],
) -> Path:
    if len(values) != len(timestamps_ms):
        raise ValueError(
            f"values and timestamps differ in length ({len(values)} != {len(timestamps_ms)})"
        )
    path = Path(path)
    with path.open("w", newline="") as fh:
        writer = csv.writer(fh)
        writer.writerow(PROXY_HEADERS)
        for v, ts in zip(values, timestamps_ms):
            writer.writerow([f"{v:.2f}", format_timestamp(ts)])
    logger.info("Wrote %d proxy samples to %s", len(values), path)
    return path


class RecordingLog:
    """Accumulates per-sample outputs for later CSV export."""

    def __init__(self) -> None:
        self.ibi_rows: List[IbiRow] = []
        self.proxy_values: List[float] = []
        self.proxy_timestamps: List[float] = []

    def append(
        self,
        result: PpgResult,
        session: Session,
        timestamp_ms: Optional[float] = None,
    ) -> None:
        """Record *result*; *timestamp_ms* is wall-clock epoch ms (default now)."""
        ts = time.time() * 1000.0 if timestamp_ms is None else timestamp_ms
        bp = session.blood_pressure
        self.proxy_values.append(result.corrected_green)
        self.proxy_timestamps.append(ts)
        self.ibi_rows.append(IbiRow(
            ibi=result.ibi_ms,
            bpm_sd=result.bpm_sd,
            smoothed_ibi=session.smoothed_ibi_ms,
            smoothed_bpm=session.smoothed_heart_rate,
            sbp=bp.sbp,
            dbp=bp.dbp,
            sbp_avg=bp.sbp_avg,
            dbp_avg=bp.dbp_avg,
            timestamp_ms=ts,
        ))

    def clear(self) -> None:
        self.ibi_rows.clear()
        self.proxy_values.clear()
        self.proxy_timestamps.clear()

    def save(self, prefix: Union[str, Path]) -> tuple:
        """Write both CSV files next to *prefix*; returns their paths."""
        prefix = Path(prefix)
        if prefix.parent != Path("."):
            prefix.parent.mkdir(parents=True, exist_ok=True)
        ibi_path = save_ibi_csv(prefix.with_name(prefix.name + "_IBI_data.csv"), self.ibi_rows)
        proxy_path = save_proxy_csv(
            prefix.with_name(prefix.name + "_Green.csv"),
            self.proxy_values,
            self.proxy_timestamps,
        )
        return ibi_path, proxy_path

    def __len__(self) -> int:
        return len(self.ibi_rows)
