"""
Visualization module for the conquest game engine.
Renders a snapshot of a match: provinces by owner, garrisons, and units in flight.
"""

import logging
from typing import Dict, Optional

import matplotlib.pyplot as plt
from matplotlib.lines import Line2D
from matplotlib.patches import Patch, Polygon

from conquest_game_engine.core.game import Match
from conquest_game_engine.core.geometry import region_bounds
from conquest_game_engine.core.map import Faction

logger = logging.getLogger(__name__)

NEUTRAL_COLOR = '#D1D5DB'
BORDER_COLOR = 'white'


class MatchVisualizer:
    """Draws a match snapshot with matplotlib."""

    def __init__(self, match: Match, figsize=(12, 10)):
        self.match = match
        self.figsize = figsize
        self.fig = None
        self.ax = None
        self.faction_colors: Dict[Faction, str] = {
            faction: config.color for faction, config in match.scenario.factions.items()
        }

    def draw_map(self, show_labels=True, show_legend=True, show_units=True):
        """Draw the complete map with the current match state."""
        self.fig, self.ax = plt.subplots(figsize=self.figsize)
        self.ax.set_aspect('equal')
        self.ax.axis('off')

        self._set_limits()
        self._draw_provinces()
        self._draw_borders()

        if show_units:
            self._draw_units()
        if show_labels:
            self._draw_garrisons()

        self._draw_title()
        if show_legend:
            self._draw_legend()

        plt.tight_layout()

    def _set_limits(self):
        bounds = [
            region_bounds(p.polygons) for p in self.match.territory_map.get_all_provinces()
        ]
        bounds = [b for b in bounds if b is not None]
        if not bounds:
            return
        min_x = min(b[0] for b in bounds)
        min_y = min(b[1] for b in bounds)
        max_x = max(b[2] for b in bounds)
        max_y = max(b[3] for b in bounds)
        pad = 0.03 * max(max_x - min_x, max_y - min_y)
        self.ax.set_xlim(min_x - pad, max_x + pad)
        self.ax.set_ylim(min_y - pad, max_y + pad)

    def _owner_color(self, owner: Optional[Faction]) -> str:
        if owner is None:
            return NEUTRAL_COLOR
        return self.faction_colors.get(owner, NEUTRAL_COLOR)

    def _draw_provinces(self):
        """Fill each province with its owner's color."""
        for province in self.match.territory_map.get_all_provinces():
            owner = self.match.state.get_owner(province.province_id)
            color = self._owner_color(owner)
            for rings in province.polygons:
                patch = Polygon(rings[0], closed=True, facecolor=color,
                                edgecolor=BORDER_COLOR, linewidth=1.2, alpha=0.85, zorder=1)
                self.ax.add_patch(patch)

    def _draw_borders(self):
        """Faint lines between centroids of adjacent provinces."""
        territory_map = self.match.territory_map
        for pid, neighbours in territory_map.adjacencies.items():
            start = territory_map.provinces[pid].centroid
            for other in neighbours:
                if other <= pid:
                    continue
                end = territory_map.provinces[other].centroid
                self.ax.plot([start[0], end[0]], [start[1], end[1]],
                             color='black', linewidth=0.4, alpha=0.15, zorder=2)

    def _draw_garrisons(self):
        for province in self.match.territory_map.get_all_provinces():
            x, y = province.centroid
            garrison = self.match.state.provinces[province.province_id].display_garrison
            self.ax.text(x, y + 10, province.name, ha='center', va='bottom',
                         fontsize=6, color='#1F2937', zorder=4)
            self.ax.text(x, y - 2, str(garrison), ha='center', va='top',
                         fontsize=9, fontweight='bold', color='black', zorder=4)

    def _draw_units(self):
        """Draw every unit in flight at the position used for collisions."""
        units = self.match.in_flight_dispatches()
        if not units:
            return
        xs = [u['position'][0] for u in units]
        ys = [u['position'][1] for u in units]
        colors = [self._owner_color(Faction.from_string(u['faction'])) for u in units]
        self.ax.scatter(xs, ys, s=14, c=colors, edgecolors='black', linewidths=0.3, zorder=5)

    def _draw_title(self):
        summary = self.match.get_summary()
        player_name = self.match.scenario.faction_config(self.match.player).name
        title = f"{self.match.scenario.name} - {player_name} - {summary['elapsed_s']:.1f}s"
        if self.match.result.value != 'playing':
            title += f" ({self.match.result.value.upper()})"
        self.ax.set_title(title, fontsize=13, fontweight='bold')

    def _draw_legend(self):
        handles = []
        for faction, count in self.match.standings():
            name = self.match.scenario.faction_config(faction).name
            handles.append(Patch(facecolor=self._owner_color(faction), label=f"{name} ({count})"))
        handles.append(Patch(facecolor=NEUTRAL_COLOR, label=f"Neutral ({len(self.match.state.neutral_provinces())})"))
        handles.append(Line2D([0], [0], marker='o', color='w', markerfacecolor='gray',
                              markeredgecolor='black', markersize=5, label='Troops in flight'))
        self.ax.legend(handles=handles, loc='upper left', bbox_to_anchor=(1.0, 1.0),
                       fontsize=8, frameon=False)

    def show(self):
        """Display the map in a window."""
        if self.fig is None:
            self.draw_map()
        plt.show()

    def save(self, filename: str, dpi=150):
        """Save the map to a file."""
        if self.fig is None:
            self.draw_map()
        self.fig.savefig(filename, dpi=dpi, bbox_inches='tight', facecolor='white')
        logger.info(f"Map saved to {filename}")

    def close(self):
        if self.fig is not None:
            plt.close(self.fig)
            self.fig = None
            self.ax = None


def visualize_match(match: Match, filename: Optional[str] = None, show_units: bool = True):
    """
    Convenience function to visualize a match.

    Args:
        match: The match to draw
        filename: Optional filename to save to. If None, displays in window.
        show_units: Whether to draw units in flight
    """
    viz = MatchVisualizer(match)
    viz.draw_map(show_units=show_units)
    if filename:
        viz.save(filename)
        viz.close()
    else:
        viz.show()
