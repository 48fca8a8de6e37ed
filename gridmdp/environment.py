"""
Grid-World MDP Environment Module

Core Idea:
    Provides the state space and the stochastic dynamics of a small,
    fully-observed grid world: a rectangular board of cells, some of which
    are impassable walls and some of which are terminal reward cells (goal or
    trap). Every dynamic programming step in :mod:`gridmdp.algorithms` reads
    a :class:`Grid` and produces a fresh one.

Mathematical Theory:
    The environment is a finite Markov Decision Process:

    .. math::
        \\mathcal{M} = \\langle \\mathcal{S}, \\mathcal{A}, P, R, \\gamma \\rangle

    where:
        - :math:`\\mathcal{S}`: grid cells (row, column)
        - :math:`\\mathcal{A}`: the four compass actions
        - :math:`P(s'|s,a)`: slippery moves, 0.8 in the intended direction
          and 0.1 to each perpendicular side
        - :math:`R`: a flat step cost on every transition; terminal cells
          carry their reward as a fixed value

    A move that would leave the board or enter a wall leaves the agent where
    it is:

    .. math::
        s' = \\begin{cases}
            s + \\delta_a & \\text{if in bounds and not a wall} \\\\
            s & \\text{otherwise}
        \\end{cases}

Complexity:
    - Transition query: O(1), always three outcomes
    - Grid snapshot: O(rows × cols)

Summary:
    This module defines the closed action and cell-type enumerations, the
    mutable :class:`Cell` record, the :class:`Grid` container with its
    snapshot operation, the default 4×4 layout, and the transition model.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

# =============================================================================
# Model Constants
# =============================================================================

ROWS = 4
COLS = 4

STEP_REWARD = -0.1
GOAL_REWARD = 10.0
TRAP_REWARD = -10.0

INTENDED_PROBABILITY = 0.8
SLIP_PROBABILITY = 0.1

Position = Tuple[int, int]
"""Cell coordinate as (row, column)."""


# =============================================================================
# Enumerations
# =============================================================================

class Action(Enum):
    """
    Compass actions available in every non-terminal cell.

    Declaration order is the tie-break order used by greedy action
    selection: UP, DOWN, LEFT, RIGHT.

    Examples
    --------
    >>> Action('LEFT')
    <Action.LEFT: 'LEFT'>
    >>> Action.UP.delta
    (-1, 0)
    """

    UP = 'UP'
    DOWN = 'DOWN'
    LEFT = 'LEFT'
    RIGHT = 'RIGHT'

    def __str__(self) -> str:
        return self.value

    @property
    def delta(self) -> Position:
        """Unit (row, column) offset of the move."""
        return ACTION_DELTAS[self]

    @property
    def symbol(self) -> str:
        """Arrow glyph used by the renderers."""
        return ACTION_SYMBOLS[self]

    @classmethod
    def coerce(cls, action: Union[Action, str]) -> Action:
        """
        Convert an action or its name into an :class:`Action`.

        Raises:
            ValueError: If ``action`` is not one of the four compass actions.
        """
        if isinstance(action, cls):
            return action
        try:
            return cls(action)
        except ValueError:
            raise ValueError(f"Unknown action: {action!r}") from None


ACTIONS: Tuple[Action, ...] = (Action.UP, Action.DOWN, Action.LEFT, Action.RIGHT)

ACTION_DELTAS: Dict[Action, Position] = {
    Action.UP: (-1, 0),     # Up: decrease row
    Action.DOWN: (1, 0),    # Down: increase row
    Action.LEFT: (0, -1),   # Left: decrease column
    Action.RIGHT: (0, 1),   # Right: increase column
}

# Perpendicular slips, in the order their outcomes are reported
SLIP_ACTIONS: Dict[Action, Tuple[Action, Action]] = {
    Action.UP: (Action.LEFT, Action.RIGHT),
    Action.DOWN: (Action.RIGHT, Action.LEFT),
    Action.LEFT: (Action.DOWN, Action.UP),
    Action.RIGHT: (Action.UP, Action.DOWN),
}

ACTION_SYMBOLS: Dict[Action, str] = {
    Action.UP: '↑',
    Action.DOWN: '↓',
    Action.LEFT: '←',
    Action.RIGHT: '→',
}


class CellType(Enum):
    """
    Classification of a grid cell.

    Attributes:
        EMPTY: Ordinary cell whose value and policy are refined by the solver
        WALL: Impassable obstacle; moves into it bounce back
        GOAL: Terminal cell holding the positive reward
        TRAP: Terminal cell holding the negative reward
    """

    EMPTY = 'empty'
    WALL = 'wall'
    GOAL = 'goal'
    TRAP = 'trap'

    @property
    def is_terminal(self) -> bool:
        return self in (CellType.GOAL, CellType.TRAP)


# =============================================================================
# Cells and Transitions
# =============================================================================

class Transition(NamedTuple):
    """One weighted outcome of a move: (probability, row, col)."""

    probability: float
    row: int
    col: int


@dataclass
class Cell:
    """
    A single grid cell.

    Attributes:
        row: Row index, fixed once the grid is built
        col: Column index, fixed once the grid is built
        cell_type: Classification, never changes after construction
        value: Current estimate of expected discounted return. Terminal cells
            hold their reward, walls hold 0.
        policy: Currently believed-optimal action (unused for terminal and
            wall cells)
        is_terminal: Derived from ``cell_type`` at construction
    """

    row: int
    col: int
    cell_type: CellType = CellType.EMPTY
    value: float = 0.0
    policy: Action = Action.UP
    is_terminal: bool = field(init=False)

    def __post_init__(self):
        self.is_terminal = self.cell_type.is_terminal

    @property
    def is_wall(self) -> bool:
        return self.cell_type is CellType.WALL

    @property
    def is_updatable(self) -> bool:
        """True for cells whose value and policy the solver may rewrite."""
        return not (self.is_terminal or self.is_wall)


# =============================================================================
# Grid Configuration
# =============================================================================

@dataclass
class GridConfig:
    """
    Layout parameters for a grid world.

    Core Idea:
        Collects the board dimensions, the placement of special cells and the
        terminal rewards in one validated object. The defaults reproduce the
        classic 4×4 demonstration board.

    Attributes:
        rows: Number of rows
        cols: Number of columns
        goals: Positions of goal cells (may be empty or hold several)
        traps: Positions of trap cells (may be empty or hold several)
        walls: Positions of wall cells
        goal_reward: Fixed value of every goal cell
        trap_reward: Fixed value of every trap cell
        initial_policy: Action every cell starts with

    Example:
        >>> config = GridConfig(rows=3, cols=5, goals=[(0, 4)], traps=[], walls=[(1, 2)])

    Visual Representation (default):
        ┌────┬────┬────┬────┐
        │    │    │    │ G  │   G: Goal (0,3), +10
        ├────┼────┼────┼────┤   T: Trap (1,3), -10
        │    │ #  │    │ T  │   #: Wall (1,1)
        ├────┼────┼────┼────┤
        │    │    │    │    │
        ├────┼────┼────┼────┤
        │    │    │    │    │
        └────┴────┴────┴────┘
    """

    rows: int = ROWS
    cols: int = COLS
    goals: Sequence[Position] = ((0, 3),)
    traps: Sequence[Position] = ((1, 3),)
    walls: Sequence[Position] = ((1, 1),)
    goal_reward: float = GOAL_REWARD
    trap_reward: float = TRAP_REWARD
    initial_policy: Action = Action.UP

    def __post_init__(self):
        """Validate configuration parameters after initialization."""
        if self.rows < 1 or self.cols < 1:
            raise ValueError(
                f"Grid dimensions must be positive, got: {self.rows}x{self.cols}"
            )

        self.initial_policy = Action.coerce(self.initial_policy)

        seen: Dict[Position, str] = {}
        for label, positions in (('goal', self.goals), ('trap', self.traps), ('wall', self.walls)):
            for pos in positions:
                row, col = pos
                if not (0 <= row < self.rows and 0 <= col < self.cols):
                    raise ValueError(f"{label.capitalize()} position out of bounds: {pos}")
                if (row, col) in seen:
                    raise ValueError(
                        f"Position {pos} assigned twice ({seen[(row, col)]} and {label})"
                    )
                seen[(row, col)] = label


# =============================================================================
# Grid
# =============================================================================

class Grid:
    """
    Fixed-size rectangular board of cells.

    Core Idea:
        The grid is the whole state of a solver run: cell types, values and
        the greedy policy. Dynamic programming steps never mutate a grid they
        are given; they take a :meth:`copy` and return it.

    Complexity:
        - Cell lookup: O(1)
        - Snapshot: O(rows × cols)

    Example:
        >>> grid = create_initial_grid()
        >>> grid[0, 3].cell_type
        <CellType.GOAL: 'goal'>
    """

    def __init__(self, cells: List[List[Cell]]):
        """
        Wrap a row-major nested list of cells.

        Raises:
            ValueError: If the board is empty, ragged, or a cell's coordinates
                do not match its position.
        """
        if not cells or not cells[0]:
            raise ValueError("Grid must contain at least one cell")

        width = len(cells[0])
        for r, row in enumerate(cells):
            if len(row) != width:
                raise ValueError(f"Row {r} has {len(row)} cells, expected {width}")
            for c, cell in enumerate(row):
                if (cell.row, cell.col) != (r, c):
                    raise ValueError(
                        f"Cell at ({r}, {c}) reports coordinates ({cell.row}, {cell.col})"
                    )

        self._cells = cells

    @property
    def rows(self) -> int:
        return len(self._cells)

    @property
    def cols(self) -> int:
        return len(self._cells[0])

    @property
    def shape(self) -> Tuple[int, int]:
        return self.rows, self.cols

    def in_bounds(self, row: int, col: int) -> bool:
        """Check if a coordinate lies on the board."""
        return 0 <= row < self.rows and 0 <= col < self.cols

    def cell(self, row: int, col: int) -> Cell:
        """
        Return the cell at (row, col).

        Raises:
            ValueError: If the coordinate is outside the grid.
        """
        if not self.in_bounds(row, col):
            raise ValueError(f"Coordinate ({row}, {col}) outside {self.rows}x{self.cols} grid")
        return self._cells[row][col]

    def __getitem__(self, pos: Position) -> Cell:
        row, col = pos
        return self.cell(row, col)

    def __iter__(self) -> Iterator[Cell]:
        """Iterate over cells in row-major order."""
        for row in self._cells:
            yield from row

    def __len__(self) -> int:
        return self.rows * self.cols

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self._cells == other._cells

    def __repr__(self) -> str:
        return f"Grid(rows={self.rows}, cols={self.cols})"

    def copy(self) -> Grid:
        """Return an independent snapshot; no cell is shared with ``self``."""
        return Grid([[replace(cell) for cell in row] for row in self._cells])

    def updatable_cells(self) -> Iterator[Cell]:
        """Iterate over non-terminal, non-wall cells in row-major order."""
        return (cell for cell in self if cell.is_updatable)

    def value_matrix(self) -> np.ndarray:
        """Return cell values as a (rows, cols) float array."""
        return np.array(
            [[cell.value for cell in row] for row in self._cells],
            dtype=np.float64
        )

    def policy_matrix(self) -> np.ndarray:
        """
        Return the policy as a (rows, cols) integer array.

        Entries index into :data:`ACTIONS`; terminal and wall cells are -1.
        """
        return np.array(
            [
                [ACTIONS.index(cell.policy) if cell.is_updatable else -1 for cell in row]
                for row in self._cells
            ],
            dtype=np.int64
        )

    # =========================================================================
    # Rendering
    # =========================================================================

    @staticmethod
    def _marker(cell: Cell) -> Optional[str]:
        if cell.cell_type is CellType.GOAL:
            return 'G'
        if cell.cell_type is CellType.TRAP:
            return 'T'
        if cell.is_wall:
            return '#'
        return None

    def render_policy(self, stream: Optional[Callable[[str], None]] = None) -> str:
        """
        Render policy as ASCII visualization.

        Args:
            stream: Output function (default: print)

        Returns:
            Rendered string representation.
        """
        output = stream or print

        lines = ["\nPolicy Visualization:"]
        lines.append("┌" + "───┬" * (self.cols - 1) + "───┐")

        for r, row in enumerate(self._cells):
            line = "│"
            for cell in row:
                marker = self._marker(cell)
                line += f" {marker or cell.policy.symbol} │"
            lines.append(line)

            if r < self.rows - 1:
                lines.append("├" + "───┼" * (self.cols - 1) + "───┤")

        lines.append("└" + "───┴" * (self.cols - 1) + "───┘")

        result = "\n".join(lines)
        output(result)
        return result

    def render_values(self, stream: Optional[Callable[[str], None]] = None) -> str:
        """
        Render value function as ASCII visualization.

        Walls are drawn as ``#``; terminal cells show their fixed value.

        Args:
            stream: Output function (default: print)

        Returns:
            Rendered string representation.
        """
        output = stream or print

        lines = ["\nState Value Function:"]
        lines.append("┌" + "───────┬" * (self.cols - 1) + "───────┐")

        for r, row in enumerate(self._cells):
            line = "│"
            for cell in row:
                if cell.is_wall:
                    line += "   #   │"
                else:
                    line += f"{cell.value:7.2f}│"
            lines.append(line)

            if r < self.rows - 1:
                lines.append("├" + "───────┼" * (self.cols - 1) + "───────┤")

        lines.append("└" + "───────┴" * (self.cols - 1) + "───────┘")

        result = "\n".join(lines)
        output(result)
        return result


# =============================================================================
# Construction
# =============================================================================

def create_initial_grid(config: Optional[GridConfig] = None) -> Grid:
    """
    Build a fresh grid from a layout configuration.

    With no argument this is the default 4×4 board: goal (+10) at (0,3),
    trap (-10) at (1,3), wall at (1,1), every other cell empty with value 0
    and policy UP.

    Args:
        config: Layout to build. Uses :class:`GridConfig` defaults if None.

    Returns:
        New grid owned by the caller.
    """
    cfg = config or GridConfig()
    goals = {tuple(p) for p in cfg.goals}
    traps = {tuple(p) for p in cfg.traps}
    walls = {tuple(p) for p in cfg.walls}

    cells: List[List[Cell]] = []
    for r in range(cfg.rows):
        row: List[Cell] = []
        for c in range(cfg.cols):
            if (r, c) in goals:
                cell = Cell(r, c, CellType.GOAL, cfg.goal_reward, cfg.initial_policy)
            elif (r, c) in traps:
                cell = Cell(r, c, CellType.TRAP, cfg.trap_reward, cfg.initial_policy)
            elif (r, c) in walls:
                cell = Cell(r, c, CellType.WALL, 0.0, cfg.initial_policy)
            else:
                cell = Cell(r, c, CellType.EMPTY, 0.0, cfg.initial_policy)
            row.append(cell)
        cells.append(row)

    logger.debug(
        "Built %dx%d grid: %d goal(s), %d trap(s), %d wall(s)",
        cfg.rows, cfg.cols, len(goals), len(traps), len(walls)
    )
    return Grid(cells)


# =============================================================================
# Transition Model
# =============================================================================

def _execute_move(grid: Grid, row: int, col: int, action: Action) -> Position:
    """Apply one unit move; leaving the board or hitting a wall stays put."""
    dr, dc = action.delta
    next_row, next_col = row + dr, col + dc

    if not grid.in_bounds(next_row, next_col) or grid.cell(next_row, next_col).is_wall:
        return row, col

    return next_row, next_col


def transitions(
    row: int,
    col: int,
    action: Union[Action, str],
    grid: Grid
) -> List[Transition]:
    """
    Get the transition distribution for a state-action pair.

    Core Idea:
        The agent moves in the intended direction with probability 0.8 and
        slips to either perpendicular side with probability 0.1 each. It
        never slips backwards.

    Mathematical Theory:
        .. math::
            P(s'|s,a) = 0.8 \\cdot \\mathbb{1}[s'=\\text{move}(s,a)] +
                        0.1 \\cdot \\sum_{b \\perp a} \\mathbb{1}[s'=\\text{move}(s,b)]

        Blocked moves resolve to :math:`s' = s`, so the three probabilities
        always sum to 1.

    Args:
        row: Source row
        col: Source column
        action: Intended action (an :class:`Action` or its name)
        grid: Board supplying bounds and walls

    Returns:
        Exactly three :class:`Transition` outcomes, intended direction first.

    Raises:
        ValueError: If (row, col) is off the grid or the action is unknown.
    """
    action = Action.coerce(action)
    if not grid.in_bounds(row, col):
        raise ValueError(f"Coordinate ({row}, {col}) outside {grid.rows}x{grid.cols} grid")

    outcomes = [Transition(INTENDED_PROBABILITY, *_execute_move(grid, row, col, action))]
    for slip_action in SLIP_ACTIONS[action]:
        outcomes.append(Transition(SLIP_PROBABILITY, *_execute_move(grid, row, col, slip_action)))

    return outcomes
