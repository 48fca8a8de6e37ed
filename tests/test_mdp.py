"""
Unit Tests for the Grid-World MDP Solver

Comprehensive test suite validating:
    - Grid construction and configuration validation
    - Transition model probabilities and collisions
    - Bellman backup values
    - Value Iteration and Policy Iteration step semantics
    - Run-to-convergence solver
"""

import unittest
import sys
import os
import math

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gridmdp.environment import (
    ACTIONS,
    Action,
    Cell,
    CellType,
    Grid,
    GridConfig,
    create_initial_grid,
    transitions,
)
from gridmdp.algorithms import (
    DynamicProgrammingSolver,
    greedy_action,
    policy_iteration_step,
    q_value,
    value_iteration_step,
)

GAMMA = 0.9


def _single_cell_config(initial_policy=Action.UP):
    """1×1 board with no special cells: every move is a self-loop."""
    return GridConfig(rows=1, cols=1, goals=(), traps=(), walls=(), initial_policy=initial_policy)


def _corridor_config():
    """1×3 board with a goal at each end, symmetric around the centre cell."""
    return GridConfig(rows=1, cols=3, goals=[(0, 0), (0, 2)], traps=(), walls=())


class TestGridConstruction(unittest.TestCase):
    """Test cases for the default grid layout."""

    def setUp(self):
        """Initialize test fixtures."""
        self.grid = create_initial_grid()

    def test_dimensions(self):
        """Verify default grid is 4×4."""
        self.assertEqual(self.grid.shape, (4, 4))
        self.assertEqual(len(list(self.grid)), 16)

    def test_goal_cell(self):
        """Verify goal placement and reward."""
        cell = self.grid[0, 3]
        self.assertIs(cell.cell_type, CellType.GOAL)
        self.assertEqual(cell.value, 10.0)
        self.assertTrue(cell.is_terminal)

    def test_trap_cell(self):
        """Verify trap placement and reward."""
        cell = self.grid[1, 3]
        self.assertIs(cell.cell_type, CellType.TRAP)
        self.assertEqual(cell.value, -10.0)
        self.assertTrue(cell.is_terminal)

    def test_wall_cell(self):
        """Verify wall placement."""
        cell = self.grid[1, 1]
        self.assertIs(cell.cell_type, CellType.WALL)
        self.assertEqual(cell.value, 0.0)
        self.assertFalse(cell.is_terminal)
        self.assertFalse(cell.is_updatable)

    def test_empty_cells(self):
        """Verify the remaining 13 cells start empty with value 0 and policy UP."""
        empty = [cell for cell in self.grid if cell.cell_type is CellType.EMPTY]
        self.assertEqual(len(empty), 13)
        for cell in empty:
            self.assertEqual(cell.value, 0.0)
            self.assertIs(cell.policy, Action.UP)
            self.assertFalse(cell.is_terminal)

    def test_fresh_grids_are_equal_but_independent(self):
        """Verify each construction yields a new, equal grid."""
        other = create_initial_grid()
        self.assertEqual(self.grid, other)
        self.assertIsNot(self.grid[0, 0], other[0, 0])

    def test_copy_is_independent(self):
        """Verify snapshot copies share no cells with the source grid."""
        snapshot = self.grid.copy()
        self.assertEqual(snapshot, self.grid)

        snapshot[2, 2].value = 5.0
        snapshot[2, 2].policy = Action.LEFT
        self.assertEqual(self.grid[2, 2].value, 0.0)
        self.assertIs(self.grid[2, 2].policy, Action.UP)
        self.assertNotEqual(snapshot, self.grid)

    def test_copy_preserves_terminal_flag(self):
        """Verify derived terminal flag survives a snapshot."""
        snapshot = self.grid.copy()
        self.assertTrue(snapshot[0, 3].is_terminal)
        self.assertTrue(snapshot[1, 3].is_terminal)

    def test_out_of_range_access(self):
        """Verify accessor rejects coordinates off the grid."""
        with self.assertRaises(ValueError):
            self.grid.cell(4, 0)
        with self.assertRaises(ValueError):
            self.grid[0, -1]

    def test_value_matrix(self):
        """Verify numpy value view."""
        values = self.grid.value_matrix()
        self.assertEqual(values.shape, (4, 4))
        self.assertEqual(values[0, 3], 10.0)
        self.assertEqual(values[1, 3], -10.0)
        self.assertEqual(values[2, 2], 0.0)

    def test_policy_matrix(self):
        """Verify numpy policy view marks terminal and wall cells with -1."""
        policy = self.grid.policy_matrix()
        self.assertEqual(policy[0, 3], -1)
        self.assertEqual(policy[1, 3], -1)
        self.assertEqual(policy[1, 1], -1)
        self.assertEqual(policy[0, 0], ACTIONS.index(Action.UP))

    def test_render_values(self):
        """Verify ASCII value rendering marks walls and shows rewards."""
        lines = []
        result = self.grid.render_values(stream=lines.append)
        self.assertEqual(lines, [result])
        self.assertIn('#', result)
        self.assertIn('10.00', result)
        self.assertIn('-10.00', result)

    def test_render_policy(self):
        """Verify ASCII policy rendering shows markers and arrows."""
        result = self.grid.render_policy(stream=lambda _: None)
        for marker in ('G', 'T', '#', '↑'):
            self.assertIn(marker, result)


class TestGridValidation(unittest.TestCase):
    """Test configuration and container validation."""

    def test_invalid_dimensions(self):
        """Verify rejection of empty boards."""
        with self.assertRaises(ValueError):
            GridConfig(rows=0)
        with self.assertRaises(ValueError):
            GridConfig(cols=-1)

    def test_position_out_of_bounds(self):
        """Verify rejection of special cells off the board."""
        with self.assertRaises(ValueError):
            GridConfig(goals=[(4, 0)])
        with self.assertRaises(ValueError):
            GridConfig(walls=[(0, 7)])

    def test_overlapping_positions(self):
        """Verify rejection of a cell listed twice."""
        with self.assertRaises(ValueError):
            GridConfig(goals=[(0, 3)], traps=[(0, 3)])
        with self.assertRaises(ValueError):
            GridConfig(walls=[(2, 2), (2, 2)])

    def test_invalid_initial_policy(self):
        """Verify rejection of an unknown initial action."""
        with self.assertRaises(ValueError):
            GridConfig(initial_policy='NORTH')

    def test_initial_policy_from_name(self):
        """Verify action names are accepted."""
        grid = create_initial_grid(GridConfig(initial_policy='LEFT'))
        self.assertIs(grid[0, 0].policy, Action.LEFT)

    def test_multiple_and_missing_terminals(self):
        """Verify any number of goals and traps is tolerated."""
        config = GridConfig(goals=[(0, 3), (3, 3)], traps=(), walls=())
        grid = create_initial_grid(config)
        goals = [cell for cell in grid if cell.cell_type is CellType.GOAL]
        traps = [cell for cell in grid if cell.cell_type is CellType.TRAP]
        self.assertEqual(len(goals), 2)
        self.assertEqual(len(traps), 0)

    def test_ragged_grid(self):
        """Verify rejection of rows of different lengths."""
        with self.assertRaises(ValueError):
            Grid([[Cell(0, 0)], [Cell(1, 0), Cell(1, 1)]])

    def test_misplaced_cell(self):
        """Verify rejection of a cell whose coordinates disagree with its slot."""
        with self.assertRaises(ValueError):
            Grid([[Cell(0, 1)]])

    def test_empty_grid(self):
        """Verify rejection of a grid without cells."""
        with self.assertRaises(ValueError):
            Grid([])


class TestTransitionModel(unittest.TestCase):
    """Test cases for the stochastic transition model."""

    def setUp(self):
        """Initialize test fixtures."""
        self.grid = create_initial_grid()

    def test_probabilities_sum_to_one(self):
        """Verify every (cell, action) distribution sums to 1."""
        for cell in self.grid:
            for action in ACTIONS:
                outcomes = transitions(cell.row, cell.col, action, self.grid)
                self.assertEqual(len(outcomes), 3)
                self.assertAlmostEqual(sum(t.probability for t in outcomes), 1.0)

    def test_intended_direction_first(self):
        """Verify 0.8 for the intended move, 0.1 for each side."""
        outcomes = transitions(2, 2, Action.RIGHT, self.grid)
        self.assertEqual([t.probability for t in outcomes], [0.8, 0.1, 0.1])
        self.assertEqual((outcomes[0].row, outcomes[0].col), (2, 3))

    def test_slips_are_perpendicular(self):
        """Verify UP slips LEFT and RIGHT, never DOWN."""
        outcomes = transitions(2, 2, Action.UP, self.grid)
        targets = [(t.row, t.col) for t in outcomes]
        self.assertEqual(targets, [(1, 2), (2, 1), (2, 3)])
        self.assertNotIn((3, 2), targets)

    def test_slip_order(self):
        """Verify side outcomes are reported in a fixed order per action."""
        expected = {
            Action.UP: [(1, 2), (2, 1), (2, 3)],
            Action.DOWN: [(3, 2), (2, 3), (2, 1)],
            Action.LEFT: [(2, 1), (3, 2), (1, 2)],
            Action.RIGHT: [(2, 3), (1, 2), (3, 2)],
        }
        for action, targets in expected.items():
            outcomes = transitions(2, 2, action, self.grid)
            self.assertEqual([(t.row, t.col) for t in outcomes], targets)

    def test_boundary_collision(self):
        """Verify moving off the board stays in place."""
        outcomes = transitions(0, 0, Action.UP, self.grid)
        self.assertEqual(
            [tuple(t) for t in outcomes],
            [(0.8, 0, 0), (0.1, 0, 0), (0.1, 0, 1)]
        )

    def test_wall_collision(self):
        """Verify moving into the wall at (1,1) stays in place."""
        outcomes = transitions(0, 1, Action.DOWN, self.grid)
        self.assertEqual(
            [tuple(t) for t in outcomes],
            [(0.8, 0, 1), (0.1, 0, 2), (0.1, 0, 0)]
        )

        outcomes = transitions(2, 1, Action.UP, self.grid)
        self.assertEqual((outcomes[0].row, outcomes[0].col), (2, 1))

    def test_move_into_terminal(self):
        """Verify terminal cells are valid destinations."""
        outcomes = transitions(0, 2, Action.RIGHT, self.grid)
        self.assertEqual((outcomes[0].row, outcomes[0].col), (0, 3))

    def test_action_name_accepted(self):
        """Verify action names are coerced."""
        self.assertEqual(
            transitions(2, 2, 'LEFT', self.grid),
            transitions(2, 2, Action.LEFT, self.grid)
        )

    def test_unknown_action(self):
        """Verify an unknown action fails fast."""
        with self.assertRaises(ValueError):
            transitions(0, 0, 'NORTH', self.grid)
        with self.assertRaises(ValueError):
            transitions(0, 0, 3, self.grid)

    def test_out_of_range_source(self):
        """Verify an off-grid source fails fast."""
        with self.assertRaises(ValueError):
            transitions(4, 0, Action.UP, self.grid)
        with self.assertRaises(ValueError):
            transitions(0, -1, Action.UP, self.grid)


class TestBellmanBackup(unittest.TestCase):
    """Test cases for the Q-value computation."""

    def setUp(self):
        """Initialize test fixtures."""
        self.grid = create_initial_grid()

    def test_q_value_toward_goal(self):
        """Verify Q((0,2), RIGHT) = 0.8(-0.1 + 9) + 0.1(-0.1) + 0.1(-0.1)."""
        self.assertAlmostEqual(q_value(0, 2, Action.RIGHT, self.grid, GAMMA), 7.1)

    def test_q_value_toward_trap(self):
        """Verify Q((2,3), UP) = 0.8(-0.1 - 9) + 0.1(-0.1) + 0.1(-0.1)."""
        self.assertAlmostEqual(q_value(2, 3, Action.UP, self.grid, GAMMA), -7.3)

    def test_q_value_step_reward_only(self):
        """Verify only the step cost accrues next to zero-valued cells."""
        for action in ACTIONS:
            self.assertAlmostEqual(q_value(3, 0, action, self.grid, GAMMA), -0.1)

    def test_q_value_scales_with_gamma(self):
        """Verify a smaller discount shrinks the goal's contribution."""
        high = q_value(0, 2, Action.RIGHT, self.grid, 0.99)
        low = q_value(0, 2, Action.RIGHT, self.grid, 0.1)
        self.assertGreater(high, low)

    def test_q_value_invalid_arguments(self):
        """Verify invalid coordinates and actions raise ValueError."""
        with self.assertRaises(ValueError):
            q_value(5, 5, Action.UP, self.grid, GAMMA)
        with self.assertRaises(ValueError):
            q_value(0, 0, 'JUMP', self.grid, GAMMA)

    def test_greedy_action(self):
        """Verify greedy selection returns the best action and its value."""
        action, value = greedy_action(0, 2, self.grid, GAMMA)
        self.assertIs(action, Action.RIGHT)
        self.assertAlmostEqual(value, 7.1)


class TestValueIterationStep(unittest.TestCase):
    """Test cases for a single Value Iteration sweep."""

    def setUp(self):
        """Initialize test fixtures."""
        self.grid = create_initial_grid()

    def test_first_step_example(self):
        """Verify one step from the default grid."""
        new_grid, max_change = value_iteration_step(self.grid, GAMMA)

        self.assertGreater(max_change, 0.0)
        self.assertAlmostEqual(max_change, 7.1)
        self.assertGreater(new_grid[0, 2].value, new_grid[0, 0].value)
        self.assertIs(new_grid[0, 2].policy, Action.RIGHT)
        self.assertAlmostEqual(new_grid[0, 0].value, -0.1)

        for cell in self.grid:
            if not cell.is_updatable:
                self.assertEqual(new_grid[cell.row, cell.col], cell)

    def test_synchronous_update(self):
        """Verify the sweep reads only the previous grid's values."""
        new_grid, _ = value_iteration_step(self.grid, GAMMA)
        # (0,1) would see (0,2) = 7.1 under an in-place sweep
        self.assertAlmostEqual(new_grid[0, 1].value, -0.1)

    def test_input_not_mutated(self):
        """Verify the step is pure with respect to its input."""
        snapshot = self.grid.copy()
        new_grid, _ = value_iteration_step(self.grid, GAMMA)
        self.assertEqual(self.grid, snapshot)
        self.assertIsNot(new_grid, self.grid)
        self.assertIsNot(new_grid[0, 0], self.grid[0, 0])

    def test_deterministic(self):
        """Verify repeated calls on the same input give identical results."""
        first_grid, first_change = value_iteration_step(self.grid, GAMMA)
        second_grid, second_change = value_iteration_step(self.grid, GAMMA)
        self.assertEqual(first_grid, second_grid)
        self.assertEqual(first_change, second_change)

    def test_convergence_on_default_grid(self):
        """Verify max change drops below 0.001 within 100 steps."""
        grid = self.grid
        converged = False
        for _ in range(100):
            grid, max_change = value_iteration_step(grid, GAMMA)
            if max_change < 1e-3:
                converged = True
                break

        self.assertTrue(converged)
        self.assertIs(grid[0, 2].policy, Action.RIGHT)
        self.assertIsNot(grid[2, 3].policy, Action.UP)
        self.assertGreater(grid[0, 2].value, grid[0, 1].value)
        self.assertGreater(grid[0, 1].value, grid[0, 0].value)

    def test_no_updatable_cells(self):
        """Verify a board of only special cells reports zero change."""
        config = GridConfig(rows=1, cols=2, goals=[(0, 0)], traps=(), walls=[(0, 1)])
        grid = create_initial_grid(config)
        new_grid, max_change = value_iteration_step(grid, GAMMA)
        self.assertEqual(max_change, 0.0)
        self.assertEqual(new_grid, grid)

    def test_invalid_gamma(self):
        """Verify non-finite or non-numeric gamma is rejected."""
        for gamma in (float('nan'), float('inf'), 'high', None):
            with self.assertRaises(ValueError):
                value_iteration_step(self.grid, gamma)


class TestPolicyIterationStep(unittest.TestCase):
    """Test cases for a single Policy Iteration round."""

    def setUp(self):
        """Initialize test fixtures."""
        self.grid = create_initial_grid()

    def test_first_step_changes_policy(self):
        """Verify the all-UP starting policy is improved."""
        new_grid, policy_changed = policy_iteration_step(self.grid, GAMMA)
        self.assertTrue(policy_changed)
        self.assertIs(new_grid[0, 2].policy, Action.RIGHT)

    def test_evaluation_uses_current_policy(self):
        """Verify five in-place sweeps under a fixed single-cell policy."""
        grid = create_initial_grid(_single_cell_config())
        new_grid, _ = policy_iteration_step(grid, GAMMA)

        expected = 0.0
        for _ in range(5):
            expected = -0.1 + GAMMA * expected
        self.assertAlmostEqual(new_grid[0, 0].value, expected)

    def test_input_not_mutated(self):
        """Verify the step is pure with respect to its input."""
        snapshot = self.grid.copy()
        policy_iteration_step(self.grid, GAMMA)
        self.assertEqual(self.grid, snapshot)

    def test_deterministic(self):
        """Verify repeated calls on the same input give identical results."""
        self.assertEqual(
            policy_iteration_step(self.grid, GAMMA),
            policy_iteration_step(self.grid, GAMMA)
        )

    def test_termination_and_stability(self):
        """Verify PI reaches a no-change step and stays there."""
        grid = self.grid
        policy_changed = True
        for _ in range(50):
            grid, policy_changed = policy_iteration_step(grid, GAMMA)
            if not policy_changed:
                break

        self.assertFalse(policy_changed)
        self.assertIs(grid[0, 2].policy, Action.RIGHT)

        for _ in range(3):
            grid, policy_changed = policy_iteration_step(grid, GAMMA)
            self.assertFalse(policy_changed)

    def test_invalid_gamma(self):
        """Verify non-finite gamma is rejected."""
        with self.assertRaises(ValueError):
            policy_iteration_step(self.grid, float('nan'))


class TestInvariants(unittest.TestCase):
    """Properties that must hold across many steps."""

    def test_terminal_and_wall_cells_never_change(self):
        """Verify special cells are identical after repeated VI and PI steps."""
        initial = create_initial_grid()
        special = [cell for cell in initial if not cell.is_updatable]

        for step in (value_iteration_step, policy_iteration_step):
            grid = initial
            for _ in range(15):
                grid, _ = step(grid, GAMMA)
                for cell in special:
                    self.assertEqual(grid[cell.row, cell.col], cell)

    def test_tie_break_prefers_first_action(self):
        """Verify symmetric Q-values resolve to the earliest action."""
        for _ in range(3):
            grid = create_initial_grid(_single_cell_config(Action.RIGHT))
            new_grid, _ = value_iteration_step(grid, GAMMA)
            self.assertIs(new_grid[0, 0].policy, Action.UP)

    def test_tie_break_between_left_and_right(self):
        """Verify LEFT wins an exact LEFT/RIGHT tie between two goals."""
        for _ in range(3):
            grid = create_initial_grid(_corridor_config())
            vi_grid, _ = value_iteration_step(grid, GAMMA)
            pi_grid, _ = policy_iteration_step(grid, GAMMA)
            self.assertIs(vi_grid[0, 1].policy, Action.LEFT)
            self.assertIs(pi_grid[0, 1].policy, Action.LEFT)
            self.assertAlmostEqual(vi_grid[0, 1].value, 7.1)


class TestDynamicProgrammingSolver(unittest.TestCase):
    """Test cases for the run-to-convergence solver."""

    def setUp(self):
        """Initialize solver."""
        self.solver = DynamicProgrammingSolver(gamma=GAMMA, verbose=False)

    def test_value_iteration_convergence(self):
        """Verify VI converges on the default grid."""
        result = self.solver.value_iteration()

        self.assertTrue(result.converged)
        self.assertLess(result.iterations, 100)
        self.assertEqual(len(result.history), result.iterations)
        self.assertLess(result.history[-1], 1e-3)
        self.assertIs(result.grid[0, 2].policy, Action.RIGHT)

    def test_policy_iteration_convergence(self):
        """Verify PI converges on the default grid."""
        result = self.solver.policy_iteration()

        self.assertTrue(result.converged)
        self.assertFalse(result.history[-1])
        self.assertTrue(result.history[0])
        self.assertIs(result.grid[0, 2].policy, Action.RIGHT)

    def test_iteration_limit(self):
        """Verify non-convergence is reported at the iteration cap."""
        vi = self.solver.value_iteration(max_iterations=1)
        self.assertFalse(vi.converged)
        self.assertEqual(vi.iterations, 1)

        pi = self.solver.policy_iteration(max_iterations=1)
        self.assertFalse(pi.converged)

    def test_first_step_stability_is_inconclusive(self):
        """Verify a no-change first PI step does not end the run."""
        grid = create_initial_grid(_single_cell_config())
        result = self.solver.policy_iteration(grid)

        self.assertTrue(result.converged)
        self.assertEqual(result.iterations, 2)
        self.assertEqual(result.history, [False, False])

    def test_starting_grid_not_mutated(self):
        """Verify the solver leaves its starting grid untouched."""
        grid = create_initial_grid()
        self.solver.value_iteration(grid)
        self.assertEqual(grid, create_initial_grid())

    def test_q_values(self):
        """Verify all four action values are reported."""
        q_values = self.solver.q_values(create_initial_grid(), 0, 2)
        self.assertEqual(list(q_values), list(ACTIONS))
        self.assertEqual(max(q_values, key=q_values.get), Action.RIGHT)

    def test_invalid_gamma(self):
        """Verify rejection of non-finite discount factor."""
        with self.assertRaises(ValueError):
            DynamicProgrammingSolver(gamma=float('inf'))
        with self.assertRaises(ValueError):
            DynamicProgrammingSolver(gamma=math.nan)

    def test_invalid_theta(self):
        """Verify rejection of invalid convergence threshold."""
        with self.assertRaises(ValueError):
            DynamicProgrammingSolver(theta=0.0)
        with self.assertRaises(ValueError):
            DynamicProgrammingSolver(theta=-0.001)


def run_all_tests():
    """Run complete test suite with verbose output."""
    from tests.test_session import (
        TestSessionConfig,
        TestSolverSession,
        TestVisualization,
    )

    print("=" * 70)
    print("gridmdp - Unit Test Suite")
    print("=" * 70)

    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    # Add all test classes
    test_classes = [
        TestGridConstruction,
        TestGridValidation,
        TestTransitionModel,
        TestBellmanBackup,
        TestValueIterationStep,
        TestPolicyIterationStep,
        TestInvariants,
        TestDynamicProgrammingSolver,
        TestSessionConfig,
        TestSolverSession,
        TestVisualization,
    ]

    for test_class in test_classes:
        suite.addTests(loader.loadTestsFromTestCase(test_class))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    print("\n" + "=" * 70)
    if result.wasSuccessful():
        print("All tests passed!")
    else:
        print(f"Tests failed: {len(result.failures)} failures, {len(result.errors)} errors")
    print("=" * 70)

    return result.wasSuccessful()


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
