"""
Bounded iterate-until-threshold refinement shared by the validation and
feasibility stages.

Each loop keeps one StrategyEvolution per strategy id. Only items scoring below
the threshold are handed to the refine callable; the others are carried forward
untouched. At exit every strategy is represented by its best-scoring iteration,
which is not necessarily the latest one.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class IterationRecord:
    snapshot: Any
    score: float


@dataclass
class StrategyEvolution:
    """Every scored version of one strategy seen during a refinement loop."""
    id: str
    original: Any
    iterations: List[IterationRecord] = field(default_factory=list)
    best_score: float = 0
    best_iteration: int = -1

    def record(self, snapshot: Any, score: float) -> None:
        self.iterations.append(IterationRecord(snapshot=snapshot, score=score))
        # Ties keep the earlier version
        if self.best_iteration == -1 or score > self.best_score:
            self.best_score = score
            self.best_iteration = len(self.iterations) - 1

    def best(self) -> Any:
        if self.best_iteration == -1:
            return self.original
        return self.iterations[self.best_iteration].snapshot


@dataclass
class RefinementOutcome:
    strategies: List[Any]
    evolutions: List[StrategyEvolution]
    iterations_run: int


class RefinementLoop:
    """Re-score low-scoring items until all clear `threshold` or the budget runs out.

    `refine(current, low_scoring, iteration)` returns re-scored replacements for
    some or all of `low_scoring`, matched back by `key_of`. Replacements for items
    that were not low-scoring are ignored. Exceptions raised by `refine` propagate.

    `load_checkpoint(iteration)` / `save_checkpoint(iteration, refined)` let the
    caller resume a partially completed loop from its own storage.
    """

    def __init__(self, name: str,
                 score_of: Callable[[Any], float],
                 refine: Callable[[List[Any], List[Any], int], List[Any]],
                 threshold: float,
                 max_iterations: int,
                 key_of: Callable[[Any], str] = lambda item: item.id,
                 load_checkpoint: Optional[Callable[[int], Optional[List[Any]]]] = None,
                 save_checkpoint: Optional[Callable[[int, List[Any]], None]] = None):
        self.name = name
        self.score_of = score_of
        self.refine = refine
        self.threshold = threshold
        self.max_iterations = max_iterations
        self.key_of = key_of
        self.load_checkpoint = load_checkpoint
        self.save_checkpoint = save_checkpoint

    def run(self, initial: List[Any]) -> RefinementOutcome:
        evolutions: Dict[str, StrategyEvolution] = {}
        for item in initial:
            key = self.key_of(item)
            evolution = StrategyEvolution(id=key, original=item)
            evolution.record(item, self.score_of(item))
            evolutions[key] = evolution

        current = list(initial)
        iteration = 0
        while iteration < self.max_iterations - 1:
            low_scoring = [item for item in current if self.score_of(item) < self.threshold]
            if not low_scoring:
                logger.info(f"✅ {self.name}: all strategies at or above {self.threshold}")
                break

            iteration += 1
            refined = self.load_checkpoint(iteration) if self.load_checkpoint else None
            if refined is not None:
                logger.info(f"📦 {self.name}: iteration {iteration} loaded from checkpoint")
            else:
                logger.info(f"🔄 {self.name} iteration {iteration}: "
                            f"{len(low_scoring)} strategies below {self.threshold}")
                refined = self.refine(current, low_scoring, iteration)
                if self.save_checkpoint:
                    self.save_checkpoint(iteration, refined)

            low_keys = {self.key_of(item) for item in low_scoring}
            replacements = {self.key_of(item): item for item in refined if self.key_of(item) in low_keys}

            next_items = []
            for item in current:
                key = self.key_of(item)
                replacement = replacements.get(key)
                if replacement is None:
                    next_items.append(item)
                    continue
                evolutions[key].record(replacement, self.score_of(replacement))
                next_items.append(replacement)
            current = next_items

        logger.info(f"🏁 {self.name} finished after {iteration + 1} iterations")
        return RefinementOutcome(
            strategies=[evolution.best() for evolution in evolutions.values()],
            evolutions=list(evolutions.values()),
            iterations_run=iteration
        )
