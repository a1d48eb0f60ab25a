"""
Metrics Tracker - Track engine metrics over time.

Exports metrics for:
- Query latency analysis
- Cache effectiveness
- Backfill behaviour
"""

from collections import Counter, deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional
import json


class MetricsTracker:
    """
    Track engine metrics over time.

    Metrics tracked:
    - Query latency (per query kind)
    - Query outcomes (ok, empty, rejected)
    - Backfill outcomes and merged bar counts
    """

    def __init__(self, max_history: int = 10000):
        """
        Initialize metrics tracker.

        Args:
            max_history: Max metrics to keep in memory
        """
        self.max_history = max_history

        # Metrics buffers
        self.query_history: deque = deque(maxlen=max_history)
        self.backfill_history: deque = deque(maxlen=max_history)

        # Counters
        self.query_outcomes: Counter = Counter()
        self.backfill_outcomes: Counter = Counter()

        from .logger import get_logger
        self.logger = get_logger(__name__)

    def record_query(
        self,
        kind: str,
        outcome: str,
        latency_ms: float,
        bars: int = 0
    ) -> None:
        """Record one query."""
        self.query_outcomes[outcome] += 1
        self.query_history.append({
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'kind': kind,
            'outcome': outcome,
            'latency_ms': round(latency_ms, 3),
            'bars': bars
        })

    def record_backfill(self, outcome: str, added: int = 0) -> None:
        """Record one backfill trigger evaluation."""
        self.backfill_outcomes[outcome] += 1
        self.backfill_history.append({
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'outcome': outcome,
            'added': added
        })

    def export_metrics(self, output_dir: str = "data/metrics") -> Optional[Path]:
        """Export all metrics to a JSON file."""
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        metrics_file = output_path / f"metrics_{timestamp}.json"
        with open(metrics_file, 'w') as f:
            json.dump({
                'current': self.get_current_metrics(),
                'queries': list(self.query_history),
                'backfills': list(self.backfill_history),
            }, f, indent=2)

        self.logger.info("Metrics exported", path=str(metrics_file))
        return metrics_file

    def get_current_metrics(self) -> Dict:
        """Get latest metrics."""
        latencies = [q['latency_ms'] for q in self.query_history]
        return {
            'queries': sum(self.query_outcomes.values()),
            'query_outcomes': dict(self.query_outcomes),
            'avg_query_latency_ms': (sum(latencies) / len(latencies)) if latencies else None,
            'last_query': self.query_history[-1] if self.query_history else None,
            'backfill_outcomes': dict(self.backfill_outcomes),
            'bars_backfilled': sum(b['added'] for b in self.backfill_history),
        }
