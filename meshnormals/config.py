"""
Configuration for normals recalculation and display.

Holds the calculation parameters (mode, smoothing angle, position
grouping) and the display settings a normals viewer uses (segment length,
index labels, split-vertex filter). Settings round-trip through JSON.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any
from pathlib import Path
import json

from meshnormals.normals_calculator import (
    DEFAULT_SMOOTHING_ANGLE,
    NormalCalculationMode,
    NormalsCalculator,
)
from meshnormals.position_grouping import GroupingStrategy, get_grouping


@dataclass
class NormalsConfig:
    """Parameters for a normals run."""

    # Calculation
    mode: NormalCalculationMode = NormalCalculationMode.AREA_AND_ANGLE_WEIGHTED
    smoothing_angle: float = DEFAULT_SMOOTHING_ANGLE

    # Position grouping: "exact", "grid" or "tolerance"
    grouping: str = "exact"
    grid_decimals: int = 5
    merge_tolerance: float = 1e-6

    # Display
    normals_length: float = 1.0
    show_indices: bool = False
    show_only_split_vertices: bool = False

    def __post_init__(self):
        self.mode = NormalCalculationMode.parse(self.mode)

    def make_grouping(self) -> GroupingStrategy:
        """Create the configured position grouping strategy."""
        if self.grouping == "grid":
            return get_grouping("grid", decimals=self.grid_decimals)
        if self.grouping == "tolerance":
            return get_grouping("tolerance", tolerance=self.merge_tolerance)
        return get_grouping(self.grouping)

    def make_calculator(self) -> NormalsCalculator:
        return NormalsCalculator(
            mode=self.mode,
            smoothing_angle=self.smoothing_angle,
            grouping=self.make_grouping(),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NormalsConfig":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    @classmethod
    def from_json(cls, path: Path) -> "NormalsConfig":
        """Load config from JSON file."""
        with open(path) as f:
            data = json.load(f)
        return cls.from_dict(data)

    def save(self, path: Path) -> None:
        """Save config to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


# Global default config
DEFAULT_CONFIG = NormalsConfig()
