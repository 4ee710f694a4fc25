"""
Report renderer for machine-readable outputs (JSON and CSV).

HTML rendering is not provided here; requesting it raises
UnsupportedOutputFormat.
"""

from __future__ import annotations

import csv
import io
from typing import List, Sequence, Union

from pagerun.app.errors import UnsupportedOutputFormat
from pagerun.app.schemas.report import ReportRecord
from pagerun.app.schemas.settings import OutputMode

CSV_HEADER = ["category", "name", "title", "type", "score"]


def render_json(report: ReportRecord) -> str:
    return report.model_dump_json(indent=2)


def render_csv(report: ReportRecord) -> str:
    """One row per (category, audit ref) pair."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)

    for category in report.categories.values():
        for ref in category.audit_refs:
            audit = report.audits.get(ref.id)
            if audit is None:
                continue
            writer.writerow(
                [
                    category.title or category.id,
                    audit.id,
                    audit.title,
                    audit.score_display_mode,
                    "" if audit.score is None else audit.score,
                ]
            )

    return buffer.getvalue()


class JsonReportRenderer:
    def generate_report(
        self,
        report: ReportRecord,
        output: Union[OutputMode, Sequence[OutputMode]],
    ) -> Union[str, List[str]]:
        if isinstance(output, (list, tuple)):
            return [self._render_one(report, mode) for mode in output]
        return self._render_one(report, output)

    @staticmethod
    def _render_one(report: ReportRecord, output: OutputMode) -> str:
        mode = OutputMode(output)
        if mode == OutputMode.JSON:
            return render_json(report)
        if mode == OutputMode.CSV:
            return render_csv(report)
        raise UnsupportedOutputFormat(mode.value)
