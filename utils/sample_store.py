"""Rolling history of energy samples shared between processes"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from energy.models import LiveReading, SamplePoint
from settings import SAMPLE_RETENTION_SECONDS, SAMPLES_FILE
from .storage import read_json, write_json_atomic

logger = logging.getLogger(__name__)

SAMPLES_KEY = "samples_v1"

_points_adapter = TypeAdapter(List[SamplePoint])


class SampleStore:
    """Time-bounded sample cache persisted in a shared JSON suite

    Every append is a full load-modify-store of the list under ``samples_v1``;
    two processes appending at the same moment resolve as last writer wins.
    """

    def __init__(self, samples_file: Optional[str] = None):
        self.samples_path = Path(samples_file if samples_file else SAMPLES_FILE)
        self.samples_path.parent.mkdir(parents=True, exist_ok=True)

    def append(
        self,
        reading: LiveReading,
        retention_seconds: float = SAMPLE_RETENTION_SECONDS,
        now: Optional[datetime] = None,
    ) -> List[SamplePoint]:
        """Add a reading and prune everything older than the retention window

        Args:
            reading: Reading to record
            retention_seconds: Width of the retention window
            now: Reference time for pruning (defaults to the current time)

        Returns:
            The persisted points, oldest first
        """
        points = self.load()
        points.append(SamplePoint.from_reading(reading))

        cutoff = (now or datetime.now(timezone.utc)) - timedelta(seconds=retention_seconds)
        points = sorted((p for p in points if p.t >= cutoff), key=lambda p: p.t)

        suite = read_json(self.samples_path) or {}
        suite[SAMPLES_KEY] = _points_adapter.dump_python(points, mode="json")
        write_json_atomic(self.samples_path, suite)

        logger.debug(f"Stored sample at {reading.timestamp.isoformat()} ({len(points)} in window)")
        return points

    def load(self) -> List[SamplePoint]:
        """Load persisted samples sorted by timestamp; corrupt data loads as empty"""
        suite = read_json(self.samples_path)
        if not suite or SAMPLES_KEY not in suite:
            return []

        try:
            points = _points_adapter.validate_python(suite[SAMPLES_KEY])
        except ValidationError as e:
            logger.warning(f"Discarding unreadable sample history: {e.error_count()} error(s)")
            return []

        return sorted(points, key=lambda p: p.t)

    def clear(self):
        suite = read_json(self.samples_path)
        if suite and SAMPLES_KEY in suite:
            del suite[SAMPLES_KEY]
            write_json_atomic(self.samples_path, suite)
