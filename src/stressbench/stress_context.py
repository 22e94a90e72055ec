import random
from dataclasses import dataclass, field
from typing import Optional

from .generators import Registry
from .metrics import Metrics
from .tps_controller import RateLimiter


@dataclass
class StressContext:
    """
    Everything one worker needs: its own session, the shared limiter, registry
    and metrics, and its per-worker settings.
    """
    session: object
    worker_index: int
    metrics: Metrics
    registry: Registry
    concurrency_limit: int
    read_rate: float
    rate_limiter: Optional[RateLimiter] = None
    seed: Optional[int] = None
    rng: random.Random = field(init=False, repr=False)

    def __post_init__(self):
        if self.concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be at least 1, got {self.concurrency_limit}")
        if not 0.0 <= self.read_rate <= 1.0:
            raise ValueError(f"read_rate must be within [0, 1], got {self.read_rate}")
        # Distinct but reproducible stream per worker when a seed is given
        self.rng = random.Random(None if self.seed is None else self.seed + self.worker_index)
