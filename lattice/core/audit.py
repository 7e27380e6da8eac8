from __future__ import annotations

import json
from collections import deque
from typing import Iterator

from ..schemas.validation import AuditRecord, RuleComplianceStats
from .logging import get_logger


class AuditLog:
    """Append-only record of every validated execution.

    Records are never rewritten. When ``max_records`` is set the log behaves as a
    ring buffer and the oldest entries fall off; otherwise it grows for the life of
    the process. ``clear`` exists only for test isolation and runtime rebuilds.
    """

    def __init__(self, *, max_records: int | None = None, enabled: bool = True) -> None:
        self._records: deque[AuditRecord] = deque(maxlen=max_records)
        self._enabled = enabled
        self._logger = get_logger(name="audit")

    @property
    def enabled(self) -> bool:
        return self._enabled

    def append(self, record: AuditRecord) -> None:
        if not self._enabled:
            return
        self._records.append(record)
        self._logger.info(
            "audit_record",
            record_id=record.id,
            executor=record.executor_id,
            task_id=record.task_id,
            compliant=record.verdict.overall_compliant,
            confidence=round(record.verdict.aggregate_confidence, 4),
            violations=record.verdict.violations,
            correction_applied=record.correction_applied,
            correction_approach=record.correction_approach,
        )

    def history(self, limit: int | None = None) -> list[AuditRecord]:
        """Return records newest first."""
        records = list(reversed(self._records))
        if limit is not None:
            return records[: max(limit, 0)]
        return records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[AuditRecord]:
        return iter(tuple(self._records))

    def compliance_stats(self) -> dict[str, RuleComplianceStats]:
        stats: dict[str, RuleComplianceStats] = {}
        for record in self._records:
            for rule, result in record.verdict.per_rule_results.items():
                current = stats.setdefault(rule, RuleComplianceStats())
                current.total += 1
                if result.compliant:
                    current.compliant += 1
        for current in stats.values():
            current.rate = current.compliant / current.total if current.total else 0.0
        return stats

    def export_json(self, *, indent: int | None = 2) -> str:
        payload = [record.model_dump(mode="json") for record in self._records]
        return json.dumps(payload, indent=indent)

    def clear(self) -> None:
        self._records.clear()


__all__ = ["AuditLog"]
