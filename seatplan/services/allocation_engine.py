"""Batch pipeline: greedy construction, local search, validation."""

from __future__ import annotations

from typing import Optional
from uuid import uuid4

from seatplan.domain.constraints import EngineConfig, validate_engine_config
from seatplan.domain.models import BatchResult
from seatplan.domain.snapshot import RosterSnapshot
from seatplan.services.allocation_validator import AllocationValidator
from seatplan.services.constraint_evaluator import ConstraintEvaluator
from seatplan.services.greedy_assigner import GreedyAssigner
from seatplan.services.local_search import LocalSearchOptimizer
from seatplan.services.scoring_service import ScoringEngine, ScoringMode
from seatplan.utils.logger import get_run_logger


def run_allocation_engine(
    snapshot: RosterSnapshot,
    config: Optional[EngineConfig] = None,
    *,
    mode: ScoringMode = ScoringMode.OPTIMIZATION,
    run_id: Optional[str] = None,
) -> BatchResult:
    """Seat every employee without a live allocation for ``snapshot.period``.

    Live allocations overlapping the period are kept exactly where they are.
    Raises :class:`InputDataError` if those allocations conflict with each
    other and :class:`AllocationInvariantError` if the result is unsound.
    """
    config = config or EngineConfig()
    validate_engine_config(config)
    run_log = get_run_logger(__name__, run_id or uuid4().hex[:12])

    evaluator = ConstraintEvaluator(snapshot, config)
    scorer = ScoringEngine(evaluator, mode=mode)

    state = snapshot.initial_state()
    candidates = snapshot.unseated_employees(state)
    run_log.info(
        "Batch run started | period=%s..%s | candidates=%s | fixed=%s | free_seats=%s",
        snapshot.period.start,
        snapshot.period.end or "open",
        len(candidates),
        len(state),
        len(snapshot.free_seats(state)),
    )

    greedy = GreedyAssigner(evaluator, scorer, run_logger=run_log).assign(candidates, state)
    optimized = LocalSearchOptimizer(
        evaluator,
        scorer,
        max_iterations=config.max_iterations,
        run_logger=run_log,
    ).optimize(
        greedy.state,
        greedy.allocated_ids,
        greedy.scores,
        greedy.unallocated,
    )

    result = AllocationValidator(evaluator).build_result(
        state=optimized.state,
        allocated_ids=optimized.allocated_ids,
        scores=optimized.scores,
        unallocated=optimized.unallocated,
        iterations=optimized.iterations,
    )
    run_log.info(
        "Batch run completed | allocated=%s | unallocated=%s | soft_violations=%s | "
        "total_score=%.2f | iterations=%s",
        len(result.allocated),
        len(result.unallocated),
        len(result.constraint_violations),
        result.total_score,
        result.iterations,
    )
    return result
