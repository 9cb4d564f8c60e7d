"""Hill-climbing improvement of a greedy seating with swap and insertion moves."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from seatplan.domain.models import UnallocatedEmployee
from seatplan.domain.snapshot import AllocationState, Placement
from seatplan.services.constraint_evaluator import ConstraintEvaluator
from seatplan.services.scoring_service import ScoringEngine
from seatplan.utils.logger import RunLogger, get_logger


logger = get_logger(__name__)

IMPROVEMENT_EPSILON = 1e-9


@dataclass
class OptimizationOutcome:
    state: AllocationState
    allocated_ids: list[str]
    scores: dict[str, float]
    unallocated: list[UnallocatedEmployee]
    iterations: int = 0
    total_history: list[float] = field(default_factory=list)

    @property
    def total_score(self) -> float:
        return float(sum(self.scores[employee_id] for employee_id in self.allocated_ids))


class LocalSearchOptimizer:
    """First-improvement local search.

    Only employees listed in ``allocated_ids`` may move; placements already
    in the state for anyone else stay where they are.
    """

    def __init__(
        self,
        evaluator: ConstraintEvaluator,
        scorer: ScoringEngine,
        max_iterations: int = 10,
        run_logger: Optional[Union[logging.Logger, RunLogger]] = None,
    ) -> None:
        self._evaluator = evaluator
        self._scorer = scorer
        self._snapshot = evaluator.snapshot
        self._max_iterations = max_iterations
        self._log = run_logger or logger

    def optimize(
        self,
        state: AllocationState,
        allocated_ids: Sequence[str],
        scores: dict[str, float],
        unallocated: Sequence[UnallocatedEmployee] = (),
    ) -> OptimizationOutcome:
        outcome = OptimizationOutcome(
            state=state,
            allocated_ids=list(allocated_ids),
            scores=dict(scores),
            unallocated=list(unallocated),
        )
        for _ in range(self._max_iterations):
            swapped = self._swap_pass(outcome)
            inserted = self._insertion_pass(outcome)
            outcome.iterations += 1
            outcome.total_history.append(outcome.total_score)
            self._log.debug(
                "Optimizer iteration | iteration=%s | swaps=%s | insertions=%s | total_score=%.2f",
                outcome.iterations,
                swapped,
                inserted,
                outcome.total_score,
            )
            if not swapped and not inserted:
                break

        self._log.info(
            "Local search completed | iterations=%s | total_score=%.2f | unallocated=%s",
            outcome.iterations,
            outcome.total_score,
            len(outcome.unallocated),
        )
        return outcome

    def _score_if_feasible(
        self,
        employee_id: str,
        seat_id: str,
        state: AllocationState,
    ) -> Optional[float]:
        employee = self._snapshot.employee_by_id[employee_id]
        seat = self._snapshot.seat_by_id[seat_id]
        evaluation = self._evaluator.evaluate(employee, seat, state)
        if not evaluation.feasible:
            return None
        return self._scorer.score(employee, seat, state, evaluation)

    def _swap_pass(self, outcome: OptimizationOutcome) -> int:
        swaps = 0
        ids = outcome.allocated_ids
        for i in range(len(ids)):
            for j in range(i + 1, len(ids)):
                first_id, second_id = ids[i], ids[j]
                first = outcome.state.placement_of(first_id)
                second = outcome.state.placement_of(second_id)
                if first is None or second is None:
                    continue

                base = outcome.state.release(first_id).release(second_id)
                first_moved = Placement(first_id, second.resource_id, second.seat_id)
                second_moved = Placement(second_id, first.resource_id, first.seat_id)

                first_score = self._score_if_feasible(
                    first_id, second.seat_id, base.assign(second_moved)
                )
                if first_score is None:
                    continue
                second_score = self._score_if_feasible(
                    second_id, first.seat_id, base.assign(first_moved)
                )
                if second_score is None:
                    continue

                current = outcome.scores[first_id] + outcome.scores[second_id]
                if first_score + second_score <= current + IMPROVEMENT_EPSILON:
                    continue

                outcome.state = base.assign(first_moved).assign(second_moved)
                outcome.scores[first_id] = first_score
                outcome.scores[second_id] = second_score
                swaps += 1
                self._log.debug(
                    "Swap committed | first=%s | second=%s | gain=%.2f",
                    first_id,
                    second_id,
                    first_score + second_score - current,
                )
        return swaps

    def _insertion_pass(self, outcome: OptimizationOutcome) -> int:
        insertions = 0
        for waiting in list(outcome.unallocated):
            placed = self._try_insert(outcome, waiting.employee_id)
            if placed:
                outcome.unallocated.remove(waiting)
                insertions += 1
        return insertions

    def _try_insert(self, outcome: OptimizationOutcome, waiting_id: str) -> bool:
        for displaced_id in list(outcome.allocated_ids):
            occupied = outcome.state.placement_of(displaced_id)
            if occupied is None:
                continue
            base = outcome.state.release(displaced_id)
            for free_seat in self._snapshot.free_seats(outcome.state):
                relocated = Placement(displaced_id, free_seat.resource_id, free_seat.seat_id)
                displaced_score = self._score_if_feasible(displaced_id, free_seat.seat_id, base)
                if displaced_score is None:
                    continue
                with_relocated = base.assign(relocated)
                inserted_score = self._score_if_feasible(
                    waiting_id, occupied.seat_id, with_relocated
                )
                if inserted_score is None:
                    continue
                if displaced_score + inserted_score <= outcome.scores[displaced_id] + IMPROVEMENT_EPSILON:
                    continue

                outcome.state = with_relocated.assign(
                    Placement(waiting_id, occupied.resource_id, occupied.seat_id)
                )
                outcome.scores[displaced_id] = displaced_score
                outcome.scores[waiting_id] = inserted_score
                outcome.allocated_ids.append(waiting_id)
                self._log.debug(
                    "Insertion committed | inserted=%s | displaced=%s | seat_id=%s",
                    waiting_id,
                    displaced_id,
                    free_seat.seat_id,
                )
                return True
        return False
