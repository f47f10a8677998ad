# ========================
# src/pipeline/reporting.py
# ========================

"""
Report Generation Module

Renders the outcome of an import run as a CSV document: a one-row stats table,
a blank separator line, then one row per rejected record.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .records import RejectionRecord, RunStats

logger = logging.getLogger(__name__)

STATS_COLUMNS = [
    ('addedCount', 'Added Users Count'),
    ('notAddedCount', 'Not Added Users Count'),
    ('currentTotalUsers', 'Total Users'),
]

ERROR_COLUMN = 'error'


@dataclass
class ImportReport:
    """A finished import: stats, rejected rows and the rendered CSV text."""
    stats: RunStats
    columns: List[str]
    rejections: List[RejectionRecord]
    content: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def summary(self) -> Dict[str, Any]:
        """Summary for logs and JSON responses."""
        return {
            'rows_seen': self.stats.rows_seen,
            'added': self.stats.added,
            'not_added': self.stats.not_added,
            'total_in_list': self.stats.total_in_list,
            **self.extra,
        }


class ReportGenerator:
    """
    Builds the import report from aggregated results.
    """

    def build(self, stats: RunStats, columns: Optional[Sequence[str]],
              rejections: Sequence[RejectionRecord]) -> ImportReport:
        """
        Render the report.

        Args:
            stats (RunStats): Final run statistics
            columns: Input columns in header order, None if the input had no header
            rejections: Every rejected row

        Returns:
            ImportReport: Report with rendered `content`
        """
        columns = list(columns or [])
        content = self.render_stats(stats) + "\n" + self.render_errors(columns, rejections)
        logger.info(f"Report generated: {stats.added} added, {stats.not_added} rejected, {stats.total_in_list} total")
        return ImportReport(stats=stats, columns=columns, rejections=list(rejections), content=content)

    def render_stats(self, stats: RunStats) -> str:
        row = {
            'addedCount': stats.added,
            'notAddedCount': stats.not_added,
            'currentTotalUsers': stats.total_in_list,
        }
        return self._write_table(STATS_COLUMNS, [row])

    def render_errors(self, columns: Sequence[str], rejections: Sequence[RejectionRecord]) -> str:
        header = [(column, column.upper()) for column in columns if column.lower() != ERROR_COLUMN]
        header.append((ERROR_COLUMN, 'ERROR'))
        return self._write_table(header, [rejection.to_report_row() for rejection in rejections])

    def save(self, report: ImportReport, file_path: str) -> str:
        """Write the rendered report to disk."""
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', newline='', encoding='utf-8') as f:
            f.write(report.content)
        logger.info(f"Report saved to {path}")
        return str(path)

    @staticmethod
    def _write_table(header, rows: Sequence[Dict[str, Any]]) -> str:
        buffer = io.StringIO()
        ids = [column_id for column_id, _ in header]
        writer = csv.DictWriter(buffer, fieldnames=ids, extrasaction='ignore', lineterminator='\n')
        writer.writerow({column_id: title for column_id, title in header})
        writer.writerows(rows)
        return buffer.getvalue()
