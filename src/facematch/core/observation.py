"""Geometric face observations as produced by a landmark detector.

An observation is everything the feature extractor is allowed to look at:
the face bounding box, a partial map of named landmarks, the head rotation
and the optional expression probabilities.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

NEUTRAL_PROBABILITY: float = 0.5


class Landmark(StrEnum):
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    NOSE_BASE = "nose_base"
    LEFT_CHEEK = "left_cheek"
    RIGHT_CHEEK = "right_cheek"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    MOUTH_LEFT = "mouth_left"
    MOUTH_RIGHT = "mouth_right"
    MOUTH_BOTTOM = "mouth_bottom"


@dataclass(frozen=True)
class Point:
    """A 2D position in image pixel space."""

    x: float
    y: float

    def distance_to(self, other: Point) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class BoundingBox:
    """Face bounding region in image pixel space."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center_x(self) -> float:
        return self.left + self.width / 2.0

    @property
    def center_y(self) -> float:
        return self.top + self.height / 2.0

    @property
    def is_degenerate(self) -> bool:
        """True when the box cannot be used to scale features."""
        values = (self.left, self.top, self.width, self.height)
        if not all(math.isfinite(v) for v in values):
            return True
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class GeometricObservation:
    """A single detected face.

    Landmarks are not guaranteed to be complete. Expression probabilities
    are optional; use the ``*_or_neutral`` accessors to read them with the
    neutral default applied.
    """

    box: BoundingBox
    landmarks: Mapping[Landmark, Point] = field(default_factory=dict)
    pitch: float = 0.0
    yaw: float = 0.0
    roll: float = 0.0
    smiling_probability: float | None = None
    left_eye_open_probability: float | None = None
    right_eye_open_probability: float | None = None

    def landmark(self, name: Landmark) -> Point | None:
        return self.landmarks.get(name)

    @property
    def smiling_or_neutral(self) -> float:
        return _or_neutral(self.smiling_probability)

    @property
    def left_eye_open_or_neutral(self) -> float:
        return _or_neutral(self.left_eye_open_probability)

    @property
    def right_eye_open_or_neutral(self) -> float:
        return _or_neutral(self.right_eye_open_probability)


def _or_neutral(probability: float | None) -> float:
    return NEUTRAL_PROBABILITY if probability is None else probability
