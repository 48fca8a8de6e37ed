"""
Visualization utilities for grid values and policies.

Usage:
    from gridmdp.visualization import plot_grid, save_grid_plot
"""

from __future__ import annotations

from typing import Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np

from .environment import GOAL_REWARD, CellType, Grid

RGB = Tuple[float, float, float]

WALL_COLOR: RGB = (0x1F / 255, 0x29 / 255, 0x37 / 255)
GOAL_COLOR: RGB = (0x22 / 255, 0xC5 / 255, 0x5E / 255)
TRAP_COLOR: RGB = (0xEF / 255, 0x44 / 255, 0x44 / 255)
NEUTRAL_COLOR: RGB = (1.0, 1.0, 1.0)


def cell_color(value: float, cell_type: CellType, max_value: float = GOAL_REWARD) -> RGB:
    """
    Map a cell to an RGB colour in [0, 1].

    Special cells get fixed colours. Empty cells fade from white towards
    green for positive values and towards red for negative values, reaching
    full intensity at ``|value| >= max_value``.

    Args:
        value: Cell value
        cell_type: Cell classification
        max_value: Magnitude mapped to full intensity
    """
    if cell_type is CellType.WALL:
        return WALL_COLOR
    if cell_type is CellType.GOAL:
        return GOAL_COLOR
    if cell_type is CellType.TRAP:
        return TRAP_COLOR

    if value > 0:
        intensity = min(1.0, value / max_value)
        fade = round(255 - 255 * intensity)
        return fade / 255, (200 + 55 * (1 - intensity)) / 255, fade / 255

    if value < 0:
        intensity = min(1.0, abs(value) / max_value)
        fade = round(255 - 255 * intensity)
        return 1.0, fade / 255, fade / 255

    return NEUTRAL_COLOR


def grid_image(grid: Grid) -> np.ndarray:
    """Return a (rows, cols, 3) RGB image of the grid."""
    image = np.zeros((grid.rows, grid.cols, 3), dtype=np.float64)
    for cell in grid:
        image[cell.row, cell.col] = cell_color(cell.value, cell.cell_type)
    return image


def plot_grid(
    grid: Grid,
    ax: Optional[plt.Axes] = None,
    title: Optional[str] = None,
    show_values: bool = True,
    show_policy: bool = True
) -> plt.Axes:
    """
    Draw the grid as a coloured board with values and policy arrows.

    Args:
        grid: Grid to draw
        ax: Axes to draw on (a new figure is created if None)
        title: Axes title
        show_values: Annotate each non-wall cell with its value
        show_policy: Draw the policy arrow on non-terminal, non-wall cells

    Returns:
        The axes drawn on.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(1.2 * grid.cols + 1, 1.2 * grid.rows + 1))

    ax.imshow(grid_image(grid), interpolation='nearest')

    for cell in grid:
        text_color = 'white' if cell.cell_type is not CellType.EMPTY else 'black'

        if cell.cell_type is CellType.GOAL:
            ax.text(cell.col, cell.row - 0.3, 'GOAL', ha='center', va='center',
                    color=text_color, fontsize=7, fontweight='bold')
        elif cell.cell_type is CellType.TRAP:
            ax.text(cell.col, cell.row - 0.3, 'TRAP', ha='center', va='center',
                    color=text_color, fontsize=7, fontweight='bold')

        if cell.is_wall:
            continue

        if show_values:
            ax.text(cell.col, cell.row, f'{cell.value:.2f}', ha='center', va='center',
                    color=text_color, fontsize=9)
        if show_policy and cell.is_updatable:
            ax.text(cell.col, cell.row + 0.3, cell.policy.symbol, ha='center', va='center',
                    color=text_color, fontsize=12)

    ax.set_xticks(np.arange(-0.5, grid.cols, 1), minor=True)
    ax.set_yticks(np.arange(-0.5, grid.rows, 1), minor=True)
    ax.grid(which='minor', color='#9ca3af', linestyle='-', linewidth=1)
    ax.tick_params(which='both', bottom=False, left=False, labelbottom=False, labelleft=False)

    if title:
        ax.set_title(title)

    return ax


def save_grid_plot(grid: Grid, path: str, title: Optional[str] = None, dpi: int = 120) -> None:
    """
    Render the grid with :func:`plot_grid` and save it to ``path``.

    Args:
        grid: Grid to draw
        path: Output image file
        title: Figure title
        dpi: Output resolution
    """
    fig, ax = plt.subplots(figsize=(1.2 * grid.cols + 1, 1.2 * grid.rows + 1))
    plot_grid(grid, ax=ax, title=title)
    fig.tight_layout()
    fig.savefig(path, dpi=dpi)
    plt.close(fig)
