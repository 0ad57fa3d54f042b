"""Main comparison engine for bdt."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from . import __version__
from .differ import RowDiffer
from .exceptions import DuplicateColumnNameError
from .formats import open_source
from .models import (
    CompareConfig,
    ComparisonState,
    DiffReport,
    ExecutionInfo,
    Summary,
    TolerancePolicy,
    Verdict,
)
from .schema import reconcile
from .sources import RowSource


logger = logging.getLogger(__name__)

_VERDICTS = {
    ComparisonState.EQUAL: Verdict.EQUAL,
    ComparisonState.UNEQUAL: Verdict.UNEQUAL,
    ComparisonState.STRUCTURALLY_INCOMPARABLE: Verdict.STRUCTURALLY_INCOMPARABLE,
}


class CompareEngine:
    """
    Orchestrates a comparison of two row sources:

    1. Schema reconciliation: align columns by name into a comparison plan
    2. Streaming comparison: walk both sources in lock-step, cell by cell
    3. Report: verdict, capped differences and complete summary counters

    The engine holds configuration only; every call to compare() builds
    its own plan and differ.
    """

    def __init__(self, config: Optional[CompareConfig] = None):
        """
        Initialize the engine.

        Args:
            config: Comparison configuration (uses defaults if not provided)
        """
        self.config = config or CompareConfig()

    def compare(self, left: RowSource, right: RowSource) -> DiffReport:
        """
        Compare two row sources.

        Args:
            left: The baseline row source
            right: The row source to validate against it

        Returns:
            DiffReport with the verdict. A schema with duplicate column names
            yields a STRUCTURALLY_INCOMPARABLE report without reading rows.

        Raises:
            RowSourceError: if either source fails mid-stream
        """
        start_time = time.time()

        try:
            plan = reconcile(left.schema, right.schema)
        except DuplicateColumnNameError as e:
            logger.error("Cannot compare: %s", e)
            return DiffReport(
                verdict=Verdict.STRUCTURALLY_INCOMPARABLE,
                summary=Summary(),
                errors=[str(e)],
                execution=self._execution_info(start_time),
            )

        differ = RowDiffer(plan, self.config.policy, self.config.limit)
        differ.diff(left, right)

        report = DiffReport(
            verdict=_VERDICTS[differ.state],
            summary=differ.summary,
            differences=differ.differences,
            incompatible_columns=[p.name for p in plan.incompatible],
            errors=[
                f"Column '{p.name}' cannot be compared: {p.left_type} vs {p.right_type}"
                for p in plan.incompatible
            ],
            execution=self._execution_info(start_time),
        )
        logger.info(
            "Comparison finished: %s (%d rows compared, %d differences)",
            report.verdict.value,
            report.summary.rows_compared,
            report.summary.differences_found,
        )
        return report

    def compare_files(self, path1: str | Path, path2: str | Path) -> DiffReport:
        """Open two files by extension and compare their contents."""
        logger.info("Comparing %s with %s", path1, path2)
        with open_source(path1, self.config.has_header, self.config.batch_size) as left, \
                open_source(path2, self.config.has_header, self.config.batch_size) as right:
            return self.compare(left, right)

    def _execution_info(self, start_time: float) -> ExecutionInfo:
        return ExecutionInfo(
            duration_ms=int((time.time() - start_time) * 1000),
            timestamp=datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            engine_version=__version__,
        )


def compare(
    left: RowSource,
    right: RowSource,
    policy: Optional[TolerancePolicy] = None,
    limit: Optional[int] = None
) -> DiffReport:
    """
    Convenience function to compare two row sources.

    Args:
        left: The baseline row source
        right: The row source to validate
        policy: Optional tolerance policy (exact equality if not provided)
        limit: Optional cap on recorded differences

    Returns:
        DiffReport
    """
    policy = policy or TolerancePolicy()
    config = CompareConfig(
        absolute_epsilon=policy.absolute_epsilon,
        relative_epsilon=policy.relative_epsilon,
        limit=limit,
    )
    return CompareEngine(config).compare(left, right)


def compare_files(
    path1: str | Path,
    path2: str | Path,
    config: Optional[CompareConfig] = None
) -> DiffReport:
    """Convenience function to compare two files of any supported format."""
    return CompareEngine(config).compare_files(path1, path2)
