"""
Solver Session Module

Core Idea:
    The step functions in :mod:`gridmdp.algorithms` are pure and stateless.
    A session is the stateful driver around them: it owns the current grid,
    the discount factor and the chosen algorithm, counts steps, and decides
    when to stop ticking based on each step's convergence signal.

Problem Statement:
    An interactive visualizer needs run / pause / single-step / reset
    controls and a status line, with one solver step per timer tick. This
    module provides those controls without any UI, so they can be driven
    from a terminal, a notebook, or a test.

Comparison:
    - :class:`~gridmdp.algorithms.DynamicProgrammingSolver`: loops to
      convergence in one call, returns only the final grid
    - :class:`SolverSession`: one step per call (or per tick in
      :meth:`SolverSession.run`), exposes every intermediate grid

Summary:
    :class:`SessionConfig` validates the user-facing settings (discount factor
    range, algorithm, tick interval). :class:`SolverSession` holds the state
    machine: READY until the algorithm's convergence test passes, then
    CONVERGED (Value Iteration) or OPTIMAL_POLICY (Policy Iteration).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, NamedTuple, Optional, Union

from .algorithms import (
    CONVERGENCE_THRESHOLD,
    policy_iteration_converged,
    policy_iteration_step,
    value_iteration_converged,
    value_iteration_step,
)
from .environment import Grid, GridConfig, create_initial_grid

logger = logging.getLogger(__name__)

GAMMA_MIN = 0.1
GAMMA_MAX = 0.99
DEFAULT_GAMMA = 0.9
DEFAULT_TICK_INTERVAL = 0.2


class Algorithm(Enum):
    """Dynamic programming algorithm driven by a session."""

    VALUE_ITERATION = 'VI'
    POLICY_ITERATION = 'PI'

    def __str__(self) -> str:
        return self.name.replace("_", " ").title()

    @classmethod
    def coerce(cls, algorithm: Union[Algorithm, str]) -> Algorithm:
        """
        Accept an :class:`Algorithm`, its short code ('VI', 'pi') or its name.

        Raises:
            ValueError: If the algorithm is not recognized.
        """
        if isinstance(algorithm, cls):
            return algorithm
        if isinstance(algorithm, str):
            key = algorithm.strip().upper()
            for member in cls:
                if key in (member.value, member.name):
                    return member
        raise ValueError(f"Unknown algorithm: {algorithm!r}")


class SessionStatus(Enum):
    """Status line shown to the user."""

    READY = 'Ready'
    CONVERGED = 'Converged!'
    OPTIMAL_POLICY = 'Optimal Policy Found!'

    def __str__(self) -> str:
        return self.value


class StepReport(NamedTuple):
    """
    Outcome of a single session step.

    Attributes:
        iteration: Step count after this step
        max_change: Largest value change (Value Iteration only)
        policy_changed: Whether any action changed (Policy Iteration only)
        converged: Whether this step satisfied the convergence test
    """

    iteration: int
    max_change: Optional[float]
    policy_changed: Optional[bool]
    converged: bool


def _check_gamma_range(gamma: float) -> float:
    if not GAMMA_MIN <= gamma <= GAMMA_MAX:
        raise ValueError(
            f"Discount factor must be in [{GAMMA_MIN}, {GAMMA_MAX}], got: {gamma}"
        )
    return float(gamma)


@dataclass
class SessionConfig:
    """
    User-facing settings of a solver session.

    Attributes:
        gamma: Discount factor, restricted to [0.1, 0.99]
        algorithm: Algorithm to step (accepts 'VI' / 'PI')
        theta: Value Iteration convergence threshold
        tick_interval: Seconds to wait between steps in :meth:`SolverSession.run`
        grid: Layout used on every reset
    """

    gamma: float = DEFAULT_GAMMA
    algorithm: Algorithm = Algorithm.VALUE_ITERATION
    theta: float = CONVERGENCE_THRESHOLD
    tick_interval: float = 0.0
    grid: GridConfig = field(default_factory=GridConfig)

    def __post_init__(self):
        """Validate configuration parameters after initialization."""
        self.gamma = _check_gamma_range(self.gamma)
        self.algorithm = Algorithm.coerce(self.algorithm)

        if self.theta <= 0:
            raise ValueError(f"Convergence threshold must be positive, got: {self.theta}")
        if self.tick_interval < 0:
            raise ValueError(f"Tick interval must be non-negative, got: {self.tick_interval}")


class SolverSession:
    """
    Stateful driver stepping one DP algorithm over a grid.

    Core Idea:
        Each :meth:`step` hands the held grid to the selected step function,
        replaces it with the returned grid, and checks the convergence
        signal. :meth:`run` repeats this on a fixed cadence until
        convergence, a step limit, or :meth:`pause`.

    Attributes:
        config: Session settings
        grid: Current grid (replaced, never mutated, by each step)
        iteration: Number of steps since the last reset
        status: Current :class:`SessionStatus`
        is_running: True while :meth:`run` is looping

    Example:
        >>> session = SolverSession(SessionConfig(gamma=0.9, algorithm='PI'))
        >>> steps = session.run(max_steps=50)
        >>> session.status
        <SessionStatus.OPTIMAL_POLICY: 'Optimal Policy Found!'>
    """

    def __init__(self, config: Optional[SessionConfig] = None):
        self.config = config or SessionConfig()
        self.is_running = False
        self.reset()

    # =========================================================================
    # Settings
    # =========================================================================

    @property
    def gamma(self) -> float:
        return self.config.gamma

    @gamma.setter
    def gamma(self, value: float) -> None:
        """Change the discount factor; takes effect on the next step."""
        self.config.gamma = _check_gamma_range(value)

    @property
    def algorithm(self) -> Algorithm:
        return self.config.algorithm

    @algorithm.setter
    def algorithm(self, value: Union[Algorithm, str]) -> None:
        """Switch algorithm; the session is reset."""
        self.config.algorithm = Algorithm.coerce(value)
        self.reset()

    @property
    def converged(self) -> bool:
        return self.status is not SessionStatus.READY

    # =========================================================================
    # Controls
    # =========================================================================

    def reset(self) -> None:
        """Restore the initial grid, zero the step count and stop running."""
        self.grid: Grid = create_initial_grid(self.config.grid)
        self.iteration = 0
        self.status = SessionStatus.READY
        self.is_running = False

    def pause(self) -> None:
        """Stop :meth:`run` after the step in progress."""
        self.is_running = False

    def step(self) -> StepReport:
        """
        Advance the selected algorithm by exactly one step.

        Returns:
            StepReport describing the step.
        """
        self.iteration += 1

        if self.algorithm is Algorithm.VALUE_ITERATION:
            self.grid, max_change = value_iteration_step(self.grid, self.gamma)
            converged = value_iteration_converged(max_change, self.config.theta)
            report = StepReport(self.iteration, max_change, None, converged)
            if converged:
                self.status = SessionStatus.CONVERGED
        else:
            self.grid, policy_changed = policy_iteration_step(self.grid, self.gamma)
            converged = policy_iteration_converged(policy_changed, self.iteration)
            report = StepReport(self.iteration, None, policy_changed, converged)
            if converged:
                self.status = SessionStatus.OPTIMAL_POLICY

        logger.debug("Step %d (%s): %s", self.iteration, self.algorithm, report)
        if converged:
            logger.info("%s: %s after %d iterations", self.algorithm, self.status, self.iteration)
            self.is_running = False

        return report

    def run(
        self,
        max_steps: int = 1000,
        on_step: Optional[Callable[[SolverSession, StepReport], None]] = None
    ) -> int:
        """
        Step repeatedly until convergence, ``max_steps``, or :meth:`pause`.

        Args:
            max_steps: Upper bound on steps taken by this call
            on_step: Called after every step with the session and its report;
                may call :meth:`pause` to stop the loop

        Returns:
            Number of steps taken by this call.
        """
        self.is_running = True
        steps = 0

        while self.is_running and steps < max_steps:
            report = self.step()
            steps += 1

            if on_step is not None:
                on_step(self, report)

            if self.is_running and steps < max_steps and self.config.tick_interval > 0:
                time.sleep(self.config.tick_interval)

        if self.is_running:
            logger.info("Stopped after %d steps without convergence", steps)
        self.is_running = False
        return steps
