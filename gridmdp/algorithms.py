"""
Dynamic Programming Algorithms for the Grid-World MDP

Core Idea:
    Dynamic Programming (DP) methods solve MDPs by repeatedly applying the
    Bellman equations over a fully known model. Here each algorithm is
    exposed one step at a time, so a driver can show convergence as it
    happens: a step reads a grid and returns a new one together with a
    convergence signal.

Mathematical Theory:
    **Action value** under value estimates :math:`V`:

    .. math::
        Q(s,a) = \\sum_{s'} P(s'|s,a) [r + \\gamma V(s')]

    with :math:`r` the flat step reward on every transition.

    **Bellman Optimality backup** (Value Iteration):

    .. math::
        V_{k+1}(s) = \\max_a Q_k(s,a)

    **Bellman Expectation backup** for a deterministic policy π
    (Policy Iteration, evaluation phase):

    .. math::
        V(s) \\leftarrow Q(s, \\pi(s))

Problem Statement:
    Given the grid's transition model and rewards, find the value function
    and greedy policy that maximize expected discounted return, exposing
    intermediate grids for animation.

Comparison:
    Value Iteration step:
        - One synchronous (Jacobi) sweep reading only the previous grid
        - Signal: largest absolute value change
    Policy Iteration step:
        - Five in-place evaluation sweeps under the current policy, then a
          greedy improvement sweep
        - Signal: whether any cell's action changed

Complexity:
    - One step: O(rows × cols × |A| × 3)
    - Policy Iteration step: six sweeps of the above

Summary:
    :func:`q_value`, :func:`value_iteration_step` and
    :func:`policy_iteration_step` are pure functions of their inputs.
    :class:`DynamicProgrammingSolver` repeats them until convergence.

References:
    [1] Bellman, R. (1957). Dynamic Programming. Princeton University Press.
    [2] Howard, R. (1960). Dynamic Programming and Markov Processes. MIT Press.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from .environment import (
    ACTIONS,
    STEP_REWARD,
    Action,
    Grid,
    create_initial_grid,
    transitions,
)

logger = logging.getLogger(__name__)

POLICY_EVALUATION_SWEEPS = 5
CONVERGENCE_THRESHOLD = 1e-3

# A no-change report on the first Policy Iteration step is inconclusive
MIN_POLICY_ITERATION_STEPS = 2


def _check_gamma(gamma: float) -> float:
    """
    Validate the discount factor.

    Raises:
        ValueError: If gamma is not a finite real number.
    """
    try:
        value = float(gamma)
    except (TypeError, ValueError):
        raise ValueError(f"Discount factor must be a real number, got: {gamma!r}") from None
    if not math.isfinite(value):
        raise ValueError(f"Discount factor must be finite, got: {gamma}")
    return value


# =============================================================================
# Bellman Backup
# =============================================================================

def q_value(
    row: int,
    col: int,
    action: Union[Action, str],
    grid: Grid,
    gamma: float
) -> float:
    """
    Compute the action value Q(s, a) under the grid's current values.

    Mathematical Definition:
        .. math::
            Q(s,a) = \\sum_{s'} P(s'|s,a) [r_{step} + \\gamma V(s')]

        The step reward applies to every outcome, including moves into a
        terminal cell; the terminal's stored value is what gets discounted.

    Args:
        row: Source row
        col: Source column
        action: Action to evaluate
        grid: Grid supplying the value estimates
        gamma: Discount factor

    Returns:
        Expected one-step return plus discounted successor value.

    Raises:
        ValueError: If (row, col) is off the grid or the action is unknown.
    """
    q_val = 0.0
    for prob, next_row, next_col in transitions(row, col, action, grid):
        q_val += prob * (STEP_REWARD + gamma * grid.cell(next_row, next_col).value)
    return q_val


def greedy_action(row: int, col: int, grid: Grid, gamma: float) -> Tuple[Action, float]:
    """
    Select the action with the strictly greatest Q-value.

    Actions are tried in UP, DOWN, LEFT, RIGHT order and a later action
    replaces the incumbent only if it is strictly better, so ties go to the
    earliest action.

    Returns:
        Tuple of (best_action, best_q_value).
    """
    best_action = grid.cell(row, col).policy
    best_value = -math.inf

    for action in ACTIONS:
        q_val = q_value(row, col, action, grid, gamma)
        if q_val > best_value:
            best_value = q_val
            best_action = action

    return best_action, best_value


# =============================================================================
# Value Iteration Step
# =============================================================================

def value_iteration_step(grid: Grid, gamma: float) -> Tuple[Grid, float]:
    """
    Perform one synchronous Bellman optimality sweep.

    Core Idea:
        Every non-terminal, non-wall cell takes the best Q-value over the
        four actions, computed from the *input* grid only. Writes go to a
        snapshot, so no cell sees a value updated earlier in the same sweep.

    Mathematical Theory:
        .. math::
            V_{k+1}(s) = \\max_a \\sum_{s'} P(s'|s,a)[r + \\gamma V_k(s')]

            \\Delta_k = \\max_s |V_{k+1}(s) - V_k(s)|

        The optimality operator is a γ-contraction, so :math:`\\Delta_k`
        shrinks geometrically and a small threshold (0.001) signals
        convergence.

    Args:
        grid: Grid holding :math:`V_k`; left untouched
        gamma: Discount factor

    Returns:
        Tuple of (new_grid, max_change). ``max_change`` is 0.0 if the grid
        has no updatable cell.

    Raises:
        ValueError: If gamma is not a finite real number.
    """
    gamma = _check_gamma(gamma)
    new_grid = grid.copy()
    max_change = 0.0

    for cell in grid.updatable_cells():
        best_action, best_value = greedy_action(cell.row, cell.col, grid, gamma)

        target = new_grid.cell(cell.row, cell.col)
        target.value = best_value
        target.policy = best_action
        max_change = max(max_change, abs(best_value - cell.value))

    logger.debug("Value iteration sweep: max change %.6f", max_change)
    return new_grid, max_change


# =============================================================================
# Policy Iteration Step
# =============================================================================

def policy_iteration_step(
    grid: Grid,
    gamma: float,
    evaluation_sweeps: int = POLICY_EVALUATION_SWEEPS
) -> Tuple[Grid, bool]:
    """
    Perform one round of truncated policy evaluation and greedy improvement.

    Core Idea:
        Rather than solving for :math:`V^\\pi` exactly, run a fixed number of
        in-place evaluation sweeps under the current policy, then make the
        policy greedy with respect to the resulting values. Keeping the
        evaluation short keeps each visible step fast.

    Mathematical Theory:
        **Evaluation** (repeated ``evaluation_sweeps`` times, Gauss-Seidel
        style on the working grid):

        .. math::
            V(s) \\leftarrow \\sum_{s'} P(s'|s,\\pi(s))[r + \\gamma V(s')]

        **Improvement**:

        .. math::
            \\pi'(s) = \\arg\\max_a Q(s,a)

        By the policy improvement theorem :math:`V^{\\pi'} \\geq V^{\\pi}`, so a
        step that changes no action indicates a stable policy.

    Args:
        grid: Grid holding the current values and policy; left untouched
        gamma: Discount factor
        evaluation_sweeps: Number of evaluation passes per step

    Returns:
        Tuple of (new_grid, policy_changed).

    Raises:
        ValueError: If gamma is not a finite real number.
    """
    gamma = _check_gamma(gamma)
    working = grid.copy()

    # 1. Policy evaluation, reading values written earlier in the same pass
    for _ in range(evaluation_sweeps):
        for cell in working.updatable_cells():
            cell.value = q_value(cell.row, cell.col, cell.policy, working, gamma)

    # 2. Policy improvement
    policy_changed = False
    changes = 0
    for cell in working.updatable_cells():
        best_action, _ = greedy_action(cell.row, cell.col, working, gamma)
        if best_action is not cell.policy:
            cell.policy = best_action
            policy_changed = True
            changes += 1

    logger.debug("Policy iteration step: %d action(s) changed", changes)
    return working, policy_changed


# =============================================================================
# Convergence Tests
# =============================================================================

def value_iteration_converged(max_change: float, theta: float = CONVERGENCE_THRESHOLD) -> bool:
    """Value Iteration has converged once the largest change drops below theta."""
    return max_change < theta


def policy_iteration_converged(policy_changed: bool, step_number: int) -> bool:
    """
    Policy Iteration has converged once a step changes no action.

    Args:
        policy_changed: Signal reported by :func:`policy_iteration_step`
        step_number: 1-based count of steps taken in this run, including
            the one that produced ``policy_changed``
    """
    return not policy_changed and step_number >= MIN_POLICY_ITERATION_STEPS


# =============================================================================
# Run-to-Convergence Solver
# =============================================================================

@dataclass
class AlgorithmResult:
    """
    Container for algorithm execution results.

    Attributes:
        grid: Final grid holding values and policy
        iterations: Number of steps performed
        converged: Whether the convergence test passed within the limit
        history: Per-step signal; max change (VI) or policy-changed flag (PI)
    """
    grid: Grid
    iterations: int
    converged: bool
    history: List[Union[float, bool]] = field(default_factory=list)


class DynamicProgrammingSolver:
    """
    Repeat Value Iteration or Policy Iteration steps until convergence.

    Core Idea:
        The step functions leave pacing to the caller. This class is the
        simplest caller: it loops, swapping in each new grid, until the
        algorithm's convergence signal fires or an iteration cap is hit.

    Comparison:
        **Policy Iteration**:
            - Few steps (each runs several evaluation sweeps)
            - Stops as soon as the policy is stable, values may still move

        **Value Iteration**:
            - More, cheaper steps
            - Stops once values settle; the policy settles earlier

    Attributes:
        gamma: Discount factor
        theta: Value Iteration convergence threshold
        verbose: Whether to log progress at INFO level

    Example:
        >>> solver = DynamicProgrammingSolver(gamma=0.9, verbose=False)
        >>> result = solver.value_iteration()
        >>> result.grid[0, 2].policy
        <Action.RIGHT: 'RIGHT'>
    """

    def __init__(
        self,
        gamma: float = 0.9,
        theta: float = CONVERGENCE_THRESHOLD,
        verbose: bool = True
    ):
        """
        Initialize the DP solver.

        Args:
            gamma: Discount factor applied to successor values
            theta: Convergence threshold for Value Iteration
            verbose: If True, log algorithm progress at INFO level.

        Raises:
            ValueError: If gamma is not finite or theta not positive.
        """
        if theta <= 0:
            raise ValueError(f"Convergence threshold must be positive, got: {theta}")

        self.gamma = _check_gamma(gamma)
        self.theta = theta
        self.verbose = verbose

    def _log(self, message: str, *args) -> None:
        """Log at INFO when verbose, otherwise at DEBUG."""
        logger.log(logging.INFO if self.verbose else logging.DEBUG, message, *args)

    def q_values(self, grid: Grid, row: int, col: int) -> Dict[Action, float]:
        """
        Compute all four action values of a cell.

        Returns:
            Mapping from each action to its Q-value, in tie-break order.
        """
        return {action: q_value(row, col, action, grid, self.gamma) for action in ACTIONS}

    def value_iteration(
        self,
        grid: Optional[Grid] = None,
        max_iterations: int = 1000
    ) -> AlgorithmResult:
        """
        Run Value Iteration steps until the largest value change < theta.

        Args:
            grid: Starting grid (default: the initial layout)
            max_iterations: Maximum number of sweeps

        Returns:
            AlgorithmResult with the final grid and per-step max changes.
        """
        self._log("Value Iteration (gamma=%.2f, theta=%g)", self.gamma, self.theta)

        current = grid if grid is not None else create_initial_grid()
        history: List[Union[float, bool]] = []

        for iteration in range(1, max_iterations + 1):
            current, max_change = value_iteration_step(current, self.gamma)
            history.append(max_change)

            if value_iteration_converged(max_change, self.theta):
                self._log("Value iteration converged in %d iterations", iteration)
                return AlgorithmResult(current, iteration, True, history)

        self._log("Reached maximum iterations: %d", max_iterations)
        return AlgorithmResult(current, max_iterations, False, history)

    def policy_iteration(
        self,
        grid: Optional[Grid] = None,
        max_iterations: int = 100
    ) -> AlgorithmResult:
        """
        Run Policy Iteration steps until a step changes no action.

        A stable report on the very first step is not accepted; at least
        two steps are always taken.

        Args:
            grid: Starting grid (default: the initial layout)
            max_iterations: Maximum number of evaluation/improvement rounds

        Returns:
            AlgorithmResult with the final grid and per-step change flags.
        """
        self._log("Policy Iteration (gamma=%.2f)", self.gamma)

        current = grid if grid is not None else create_initial_grid()
        history: List[Union[float, bool]] = []

        for iteration in range(1, max_iterations + 1):
            current, policy_changed = policy_iteration_step(current, self.gamma)
            history.append(policy_changed)

            if policy_iteration_converged(policy_changed, iteration):
                self._log("Policy iteration converged in %d iterations", iteration)
                return AlgorithmResult(current, iteration, True, history)

        self._log("Reached maximum iterations: %d", max_iterations)
        return AlgorithmResult(current, max_iterations, False, history)
