"""Geometric feature extraction.

Maps a :class:`GeometricObservation` to a fixed-length float32 vector. The
vector is assembled from an ordered list of feature groups, each written at
an offset computed once at import time, so every vector ever produced by a
given layout version has the same dimension and the same meaning per slot.

Features whose landmark inputs are missing are written as 0. The tail of
the vector is a ``reserved`` group that is always 0.

Changing any of the enumerations below (landmark order, pairs, triangles,
group sizes) changes the meaning of stored embeddings: bump
``FEATURE_LAYOUT_VERSION`` and re-enroll when doing so.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from facematch.core.observation import Landmark, Point

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from numpy.typing import NDArray

    from facematch.core.observation import BoundingBox, GeometricObservation

FEATURE_LAYOUT_VERSION: int = 1

POSITION_SCALE: float = 1000.0
AREA_SCALE: float = 1_000_000.0
ROTATION_SCALE: float = 90.0

LANDMARK_ORDER: tuple[Landmark, ...] = (
    Landmark.LEFT_EYE,
    Landmark.RIGHT_EYE,
    Landmark.NOSE_BASE,
    Landmark.LEFT_CHEEK,
    Landmark.RIGHT_CHEEK,
    Landmark.LEFT_EAR,
    Landmark.RIGHT_EAR,
    Landmark.MOUTH_LEFT,
    Landmark.MOUTH_RIGHT,
    Landmark.MOUTH_BOTTOM,
)

_LE = Landmark.LEFT_EYE
_RE = Landmark.RIGHT_EYE
_NOSE = Landmark.NOSE_BASE
_LC = Landmark.LEFT_CHEEK
_RC = Landmark.RIGHT_CHEEK
_LEAR = Landmark.LEFT_EAR
_REAR = Landmark.RIGHT_EAR
_ML = Landmark.MOUTH_LEFT
_MR = Landmark.MOUTH_RIGHT
_MB = Landmark.MOUTH_BOTTOM

DISTANCE_PAIRS: tuple[tuple[Landmark, Landmark], ...] = (
    (_LE, _RE),
    (_LE, _NOSE),
    (_RE, _NOSE),
    (_LE, _ML),
    (_RE, _MR),
    (_LE, _MB),
    (_RE, _MB),
    (_NOSE, _ML),
    (_NOSE, _MR),
    (_NOSE, _MB),
    (_ML, _MR),
    (_LE, _LC),
    (_RE, _RC),
    (_NOSE, _LC),
    (_NOSE, _RC),
    (_LE, _LEAR),
    (_RE, _REAR),
    (_LE, _RC),
    (_RE, _LC),
    (_LE, _MR),
    (_RE, _ML),
    (_LC, _RC),
    (_LC, _ML),
    (_RC, _MR),
    (_LC, _MR),
    (_RC, _ML),
    (_LEAR, _REAR),
    (_LEAR, _NOSE),
    (_REAR, _NOSE),
    (_LEAR, _ML),
    (_REAR, _MR),
    (_ML, _MB),
    (_MR, _MB),
    (_LC, _MB),
    (_RC, _MB),
    (_LEAR, _LC),
    (_REAR, _RC),
    (_LEAR, _MB),
    (_REAR, _MB),
    (_LE, _REAR),
    (_RE, _LEAR),
)

ANGLE_PAIRS: tuple[tuple[Landmark, Landmark], ...] = (
    (_LE, _RE),
    (_LE, _NOSE),
    (_RE, _NOSE),
    (_NOSE, _ML),
    (_NOSE, _MR),
    (_LC, _RC),
    (_LEAR, _REAR),
    (_ML, _MR),
)

# (vertex, first arm, second arm)
TRIANGLES: tuple[tuple[Landmark, Landmark, Landmark], ...] = (
    (_LE, _NOSE, _RE),
    (_LE, _ML, _NOSE),
    (_RE, _MR, _NOSE),
    (_NOSE, _ML, _MR),
    (_MB, _LE, _RE),
    (_NOSE, _LC, _RC),
    (_ML, _LE, _NOSE),
    (_MR, _RE, _NOSE),
)

RATIO_COUNT: int = 28
RESERVED_COUNT: int = 39


class InvalidObservationError(ValueError):
    """Raised when an observation has no usable bounding box."""


@dataclass(frozen=True)
class FeatureGroup:
    """A contiguous run of slots in the feature vector."""

    name: str
    offset: int
    size: int

    @property
    def slice(self) -> slice:
        return slice(self.offset, self.offset + self.size)


def _build_layout(groups: Sequence[tuple[str, int]]) -> tuple[FeatureGroup, ...]:
    layout: list[FeatureGroup] = []
    offset = 0
    for name, size in groups:
        layout.append(FeatureGroup(name=name, offset=offset, size=size))
        offset += size
    return tuple(layout)


FEATURE_LAYOUT: tuple[FeatureGroup, ...] = _build_layout(
    (
        ("box_geometry", 6),
        ("absolute_positions", 2 * len(LANDMARK_ORDER)),
        ("relative_positions", 2 * len(LANDMARK_ORDER)),
        ("pair_distances", len(DISTANCE_PAIRS)),
        ("pair_angles", len(ANGLE_PAIRS)),
        ("center_angles", len(LANDMARK_ORDER)),
        ("triangle_cosines", len(TRIANGLES)),
        ("ratios", RATIO_COUNT),
        ("head_rotation", 6),
        ("expression", 6),
        ("quadrants", 8),
        ("reserved", RESERVED_COUNT),
    )
)

FEATURE_GROUPS: dict[str, FeatureGroup] = {group.name: group for group in FEATURE_LAYOUT}

EMBEDDING_DIM: int = FEATURE_LAYOUT[-1].offset + FEATURE_LAYOUT[-1].size

FEATURE_LANDMARKS: frozenset[Landmark] = frozenset(LANDMARK_ORDER)

_FLOAT32_MAX = float(np.finfo(np.float32).max)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract_features(observation: GeometricObservation) -> NDArray[np.float32]:
    """Compute the raw (unnormalized) feature vector of an observation.

    Deterministic over observations with a non-degenerate box and finite
    rotation and expression values. Non-finite landmarks count as absent.

    Raises:
        InvalidObservationError: If the bounding box has a non-positive or
            non-finite dimension, a rotation or probability is non-finite, or
            any feature falls outside the float32 range.
    """
    box = observation.box
    if box.is_degenerate:
        raise InvalidObservationError(f"Degenerate bounding box: {box}")

    scalars = (
        observation.pitch,
        observation.yaw,
        observation.roll,
        observation.smiling_or_neutral,
        observation.left_eye_open_or_neutral,
        observation.right_eye_open_or_neutral,
    )
    if not all(math.isfinite(value) for value in scalars):
        raise InvalidObservationError("Head rotation and expression values must be finite")

    landmarks = _usable_landmarks(observation.landmarks)
    buffer = np.zeros(EMBEDDING_DIM, dtype=np.float64)
    for name, compute in _GROUP_WRITERS:
        buffer[FEATURE_GROUPS[name].slice] = compute(observation, box, landmarks)

    # Squared rotations and pixel-scaled values can overflow on extreme input.
    if not np.isfinite(buffer).all() or np.abs(buffer).max() > _FLOAT32_MAX:
        raise InvalidObservationError("Observation values overflow the feature range")
    return buffer.astype(np.float32)


# ---------------------------------------------------------------------------
# Geometry helpers
# ---------------------------------------------------------------------------


def _usable_landmarks(landmarks: Mapping[Landmark, Point]) -> dict[Landmark, Point]:
    # Non-finite positions are treated like absent landmarks.
    return {
        name: point
        for name, point in landmarks.items()
        if name in FEATURE_LANDMARKS and math.isfinite(point.x) and math.isfinite(point.y)
    }


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator != 0 else 0.0


def _angle(origin: Point, target: Point) -> float:
    return math.atan2(target.y - origin.y, target.x - origin.x) / math.pi


def _vertex_cosine(vertex: Point, first: Point, second: Point) -> float:
    dx1, dy1 = first.x - vertex.x, first.y - vertex.y
    dx2, dy2 = second.x - vertex.x, second.y - vertex.y
    mag1 = math.hypot(dx1, dy1)
    mag2 = math.hypot(dx2, dy2)
    if mag1 <= 0 or mag2 <= 0:
        return 0.0
    return (dx1 * dx2 + dy1 * dy2) / (mag1 * mag2)


def _side_symmetry(inner: Point | None, outer: Point | None, center_x: float) -> float:
    """Distance from ``inner`` to ``outer`` relative to ``inner``'s distance to the midline."""
    if inner is None or outer is None:
        return 0.0
    return _ratio(abs(inner.x - outer.x), abs(inner.x - center_x))


# ---------------------------------------------------------------------------
# Feature groups
# ---------------------------------------------------------------------------

_Landmarks = dict[Landmark, Point]


def _box_geometry(observation: GeometricObservation, box: BoundingBox, landmarks: _Landmarks) -> list[float]:
    return [
        box.width / POSITION_SCALE,
        box.height / POSITION_SCALE,
        box.width / box.height,
        (box.width * box.height) / AREA_SCALE,
        box.left / POSITION_SCALE,
        box.top / POSITION_SCALE,
    ]


def _absolute_positions(observation: GeometricObservation, box: BoundingBox, landmarks: _Landmarks) -> list[float]:
    values: list[float] = []
    for name in LANDMARK_ORDER:
        point = landmarks.get(name)
        if point is None:
            values.extend((0.0, 0.0))
        else:
            values.extend((point.x / POSITION_SCALE, point.y / POSITION_SCALE))
    return values


def _relative_positions(observation: GeometricObservation, box: BoundingBox, landmarks: _Landmarks) -> list[float]:
    values: list[float] = []
    for name in LANDMARK_ORDER:
        point = landmarks.get(name)
        if point is None:
            values.extend((0.0, 0.0))
        else:
            values.extend(((point.x - box.center_x) / box.width, (point.y - box.center_y) / box.height))
    return values


def _pair_distances(observation: GeometricObservation, box: BoundingBox, landmarks: _Landmarks) -> list[float]:
    values: list[float] = []
    for first, second in DISTANCE_PAIRS:
        a, b = landmarks.get(first), landmarks.get(second)
        values.append(a.distance_to(b) / box.width if a is not None and b is not None else 0.0)
    return values


def _pair_angles(observation: GeometricObservation, box: BoundingBox, landmarks: _Landmarks) -> list[float]:
    values: list[float] = []
    for first, second in ANGLE_PAIRS:
        a, b = landmarks.get(first), landmarks.get(second)
        values.append(_angle(a, b) if a is not None and b is not None else 0.0)
    return values


def _center_angles(observation: GeometricObservation, box: BoundingBox, landmarks: _Landmarks) -> list[float]:
    center = Point(box.center_x, box.center_y)
    values: list[float] = []
    for name in LANDMARK_ORDER:
        point = landmarks.get(name)
        values.append(_angle(center, point) if point is not None else 0.0)
    return values


def _triangle_cosines(observation: GeometricObservation, box: BoundingBox, landmarks: _Landmarks) -> list[float]:
    values: list[float] = []
    for vertex_name, first_name, second_name in TRIANGLES:
        vertex = landmarks.get(vertex_name)
        first = landmarks.get(first_name)
        second = landmarks.get(second_name)
        if vertex is None or first is None or second is None:
            values.append(0.0)
        else:
            values.append(_vertex_cosine(vertex, first, second))
    return values


def _ratios(observation: GeometricObservation, box: BoundingBox, landmarks: _Landmarks) -> list[float]:
    w, h = box.width, box.height
    cx, cy = box.center_x, box.center_y
    left_eye, right_eye = landmarks.get(_LE), landmarks.get(_RE)
    nose = landmarks.get(_NOSE)
    mouth_left, mouth_right, mouth_bottom = landmarks.get(_ML), landmarks.get(_MR), landmarks.get(_MB)
    left_cheek, right_cheek = landmarks.get(_LC), landmarks.get(_RC)
    left_ear, right_ear = landmarks.get(_LEAR), landmarks.get(_REAR)

    eye_distance = 0.0
    eyes = [0.0] * 5
    if left_eye is not None and right_eye is not None:
        eye_distance = left_eye.distance_to(right_eye)
        eye_mid_y = (left_eye.y + right_eye.y) / 2.0
        eyes = [
            eye_distance / w,
            (eye_mid_y - box.top) / h,
            eye_distance / h,
            (right_eye.x - left_eye.x) / w,
            (right_eye.y - left_eye.y) / h,
        ]

    nose_values = [0.0] * 5
    if nose is not None:
        nose_values = [
            (nose.x - cx) / w,
            (nose.y - cy) / h,
            (nose.y - box.top) / h,
            (nose.x - box.left) / w,
            (box.bottom - nose.y) / h,
        ]

    mouth_bottom_values = [0.0] * 4
    if mouth_bottom is not None:
        mouth_bottom_values = [
            (mouth_bottom.y - cy) / h,
            (box.bottom - mouth_bottom.y) / h,
            (mouth_bottom.x - cx) / w,
            (mouth_bottom.y - box.top) / h,
        ]

    mouth_width_values = [0.0] * 4
    if mouth_left is not None and mouth_right is not None:
        mouth_width = mouth_left.distance_to(mouth_right)
        mouth_width_values = [
            mouth_width / w,
            mouth_width / h,
            (mouth_right.x - mouth_left.x) / w,
            _ratio(mouth_width, eye_distance),
        ]

    left_symmetry = _side_symmetry(left_eye, left_cheek, cx)
    right_symmetry = _side_symmetry(right_eye, right_cheek, cx)
    symmetry = [
        left_symmetry,
        right_symmetry,
        abs(left_symmetry - right_symmetry),
        abs(nose.x - cx) / w if nose is not None else 0.0,
        abs(mouth_bottom.x - cx) / w if mouth_bottom is not None else 0.0,
    ]

    cheeks = [0.0, 0.0]
    if left_cheek is not None and right_cheek is not None:
        cheek_distance = left_cheek.distance_to(right_cheek)
        cheeks = [cheek_distance / w, cheek_distance / h]

    ears = [0.0, 0.0]
    if left_ear is not None and right_ear is not None:
        ear_distance = left_ear.distance_to(right_ear)
        ears = [ear_distance / w, ear_distance / h]

    nose_drop = 0.0
    if nose is not None and left_eye is not None and right_eye is not None:
        nose_drop = (nose.y - (left_eye.y + right_eye.y) / 2.0) / h

    return [*eyes, *nose_values, *mouth_bottom_values, *mouth_width_values, *symmetry, *cheeks, *ears, nose_drop]


def _head_rotation(observation: GeometricObservation, box: BoundingBox, landmarks: _Landmarks) -> list[float]:
    values: list[float] = []
    for angle in (observation.pitch, observation.yaw, observation.roll):
        values.extend((angle / ROTATION_SCALE, (angle * angle) / (ROTATION_SCALE * ROTATION_SCALE)))
    return values


def _expression(observation: GeometricObservation, box: BoundingBox, landmarks: _Landmarks) -> list[float]:
    smiling = observation.smiling_or_neutral
    left_open = observation.left_eye_open_or_neutral
    right_open = observation.right_eye_open_or_neutral
    eyes_open = (left_open + right_open) / 2.0
    return [smiling, left_open, right_open, eyes_open, abs(left_open - right_open), smiling * eyes_open]


def _quadrants(observation: GeometricObservation, box: BoundingBox, landmarks: _Landmarks) -> list[float]:
    cx, cy = box.center_x, box.center_y
    left_eye, right_eye = landmarks.get(_LE), landmarks.get(_RE)

    flags = [0.0] * 4
    if left_eye is not None:
        flags[0] = 1.0 if left_eye.x < cx else 0.0
        flags[1] = 1.0 if left_eye.y < cy else 0.0
    if right_eye is not None:
        flags[2] = 1.0 if right_eye.x > cx else 0.0
        flags[3] = 1.0 if right_eye.y < cy else 0.0

    counts = [0, 0, 0, 0]
    for point in landmarks.values():
        left = point.x < cx
        upper = point.y < cy
        if upper:
            counts[0 if left else 1] += 1
        else:
            counts[2 if left else 3] += 1
    total = len(landmarks)
    density = [_ratio(count, total) for count in counts]
    return flags + density


# Order is irrelevant here; every group lands at its own offset. The reserved
# group has no writer and stays zero.
_GROUP_WRITERS: tuple[tuple[str, Callable[[GeometricObservation, BoundingBox, _Landmarks], list[float]]], ...] = (
    ("box_geometry", _box_geometry),
    ("absolute_positions", _absolute_positions),
    ("relative_positions", _relative_positions),
    ("pair_distances", _pair_distances),
    ("pair_angles", _pair_angles),
    ("center_angles", _center_angles),
    ("triangle_cosines", _triangle_cosines),
    ("ratios", _ratios),
    ("head_rotation", _head_rotation),
    ("expression", _expression),
    ("quadrants", _quadrants),
)
