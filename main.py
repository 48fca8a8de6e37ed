#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
gridmdp: Main Entry Point

This module drives the step-by-step solvers from the command line:
    1. Build the default 4×4 grid (goal, trap, wall)
    2. Step Value Iteration or Policy Iteration until convergence
    3. Render the value function and policy after each step
    4. Compare both algorithms' final policies

Usage:
    python main.py                          # Run tests, then demonstration
    python main.py --test-only              # Run tests only
    python main.py --demo-only -a pi        # Animate Policy Iteration
    python main.py --demo-only --interval 0.2 --plot grid.png
"""

from __future__ import annotations

import sys
import argparse
import logging

from gridmdp.algorithms import DynamicProgrammingSolver
from gridmdp.environment import ACTIONS
from gridmdp.session import (
    DEFAULT_GAMMA,
    GAMMA_MAX,
    GAMMA_MIN,
    SessionConfig,
    SolverSession,
    StepReport,
)


def run_tests() -> bool:
    """
    Execute complete test suite.

    Returns:
        True if all tests pass, False otherwise.
    """
    from tests.test_mdp import run_all_tests
    return run_all_tests()


def _print_step(session: SolverSession, report: StepReport) -> None:
    """Render the grid after one step, as the visualizer would per tick."""
    if report.max_change is not None:
        signal = f"max change = {report.max_change:.6f}"
    else:
        signal = f"policy changed = {report.policy_changed}"

    print(f"\n--- Iteration {report.iteration} ({signal}) ---")
    session.grid.render_values()
    session.grid.render_policy()


def run_demonstration(args: argparse.Namespace) -> None:
    """
    Run the step-by-step solver demonstration.

    Demonstrates:
        - Session configuration (algorithm, discount factor, cadence)
        - Ticking one solver step at a time until convergence
        - Agreement between Value Iteration and Policy Iteration policies
    """
    print("\n" + "=" * 70)
    print("gridmdp: Grid World Value & Policy Iteration")
    print("=" * 70)

    config = SessionConfig(
        gamma=args.gamma,
        algorithm=args.algorithm,
        tick_interval=args.interval
    )
    session = SolverSession(config)

    print(f"\nSession Configuration:")
    print(f"  Grid size: {session.grid.rows}×{session.grid.cols}")
    print(f"  Algorithm: {session.algorithm}")
    print(f"  Discount factor: γ = {session.gamma}")
    print(f"  Tick interval: {config.tick_interval}s")

    session.grid.render_values()
    session.grid.render_policy()

    # =========================================================================
    # Step Loop
    # =========================================================================

    steps = session.run(
        max_steps=args.max_steps,
        on_step=None if args.quiet else _print_step
    )

    print("\n" + "=" * 70)
    print(f"Status: {session.status} (iterations: {session.iteration}, this run: {steps})")
    print("=" * 70)
    session.grid.render_values()
    session.grid.render_policy()

    # =========================================================================
    # Algorithm Comparison
    # =========================================================================

    solver = DynamicProgrammingSolver(gamma=session.gamma, verbose=not args.quiet)
    result_vi = solver.value_iteration()
    result_pi = solver.policy_iteration()

    print("\n" + "=" * 70)
    print("Algorithm Comparison")
    print("=" * 70)
    print(f"{'Algorithm':<25} {'Iterations':>15} {'Converged':>12}")
    print("-" * 55)
    print(f"{'Policy Iteration':<25} {result_pi.iterations:>15} {'Yes' if result_pi.converged else 'No':>12}")
    print(f"{'Value Iteration':<25} {result_vi.iterations:>15} {'Yes' if result_vi.converged else 'No':>12}")

    disagreements = [
        (cell.row, cell.col)
        for cell in result_vi.grid.updatable_cells()
        if cell.policy is not result_pi.grid.cell(cell.row, cell.col).policy
    ]
    print(f"\nCells where the policies differ: {disagreements or 'none'}")

    start = result_vi.grid.cell(session.grid.rows - 1, 0)
    q_values = solver.q_values(result_vi.grid, start.row, start.col)
    print(f"\nQ-values at ({start.row}, {start.col}):")
    for action in ACTIONS:
        print(f"  {str(action):<6} {q_values[action]:8.3f}")

    if args.plot:
        from gridmdp.visualization import save_grid_plot

        save_grid_plot(
            session.grid,
            args.plot,
            title=f"{session.algorithm} (γ={session.gamma}, iteration {session.iteration})"
        )
        print(f"\nSaved grid plot to {args.plot}")

    print("\n" + "=" * 70)
    print("Demonstration Complete")
    print("=" * 70)


def main():
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="gridmdp: step-by-step Value and Policy Iteration on a grid world",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py                          # Run tests + demonstration
    python main.py --test-only              # Run tests only
    python main.py --demo-only -a pi -g 0.5 # Policy Iteration, gamma 0.5
        """
    )

    parser.add_argument(
        '-a', '--algorithm',
        choices=['vi', 'pi'],
        default='vi',
        help='Algorithm to step: value iteration (vi) or policy iteration (pi)'
    )
    parser.add_argument(
        '-g', '--gamma',
        type=float,
        default=DEFAULT_GAMMA,
        help=f'Discount factor in [{GAMMA_MIN}, {GAMMA_MAX}] (default: {DEFAULT_GAMMA})'
    )
    parser.add_argument(
        '--max-steps',
        type=int,
        default=200,
        help='Maximum number of steps to run (default: 200)'
    )
    parser.add_argument(
        '--interval',
        type=float,
        default=0.0,
        help='Seconds to wait between steps (default: 0)'
    )
    parser.add_argument(
        '--plot',
        metavar='PATH',
        help='Save a heat map of the final grid to PATH'
    )
    parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Only show the final grid'
    )
    parser.add_argument(
        '--test-only',
        action='store_true',
        help='Run unit tests only'
    )
    parser.add_argument(
        '--demo-only',
        action='store_true',
        help='Run demonstration only (skip tests)'
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    if args.test_only:
        success = run_tests()
        sys.exit(0 if success else 1)

    try:
        SessionConfig(gamma=args.gamma, algorithm=args.algorithm, tick_interval=args.interval)
    except ValueError as exc:
        parser.error(str(exc))

    if args.demo_only:
        run_demonstration(args)
        return

    # Default: run tests first, then demonstration
    print("Running unit tests first...\n")
    success = run_tests()

    if not success:
        print("\nUnit tests failed. Please fix issues before running demonstration.")
        sys.exit(1)

    run_demonstration(args)


if __name__ == "__main__":
    main()
