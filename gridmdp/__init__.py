"""
gridmdp: Value Iteration and Policy Iteration on a Grid World

Step-by-step dynamic programming solvers for a small, fully-observed grid
world MDP with slippery moves, walls, and terminal goal/trap cells. Each
algorithm is exposed one step at a time so a driver can animate convergence.

Modules:
    environment: Grid model, default layout and stochastic transition model
    algorithms: Bellman backup, Value/Policy Iteration steps, DP solver
    session: Stateful step driver (run / pause / step / reset)
    visualization: Heat-map rendering of values and policies

References:
    [1] Sutton & Barto, "Reinforcement Learning: An Introduction", 2018
    [2] Bellman, R. "Dynamic Programming", Princeton University Press, 1957
    [3] Howard, R. "Dynamic Programming and Markov Processes", MIT Press, 1960
"""

from .environment import (
    ACTIONS,
    COLS,
    GOAL_REWARD,
    ROWS,
    STEP_REWARD,
    TRAP_REWARD,
    Action,
    Cell,
    CellType,
    Grid,
    GridConfig,
    Transition,
    create_initial_grid,
    transitions,
)
from .algorithms import (
    AlgorithmResult,
    DynamicProgrammingSolver,
    greedy_action,
    policy_iteration_step,
    q_value,
    value_iteration_step,
)
from .session import Algorithm, SessionConfig, SessionStatus, SolverSession, StepReport

__version__ = "1.0.0"

__all__ = [
    "ACTIONS",
    "ROWS",
    "COLS",
    "STEP_REWARD",
    "GOAL_REWARD",
    "TRAP_REWARD",
    "Action",
    "Cell",
    "CellType",
    "Grid",
    "GridConfig",
    "Transition",
    "create_initial_grid",
    "transitions",
    "q_value",
    "greedy_action",
    "value_iteration_step",
    "policy_iteration_step",
    "DynamicProgrammingSolver",
    "AlgorithmResult",
    "Algorithm",
    "SessionConfig",
    "SessionStatus",
    "SolverSession",
    "StepReport",
]
