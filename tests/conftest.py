"""Shared fixtures: a frontal face and its detector payload."""

from __future__ import annotations

from typing import Any

import pytest

from facematch.core.observation import BoundingBox, GeometricObservation, Landmark, Point

# 200x200 box centred on (200, 200); eyes above the centre line, mouth below.
FRONTAL_BOX = {"left": 100.0, "top": 100.0, "width": 200.0, "height": 200.0}

FRONTAL_LANDMARKS: dict[Landmark, tuple[float, float]] = {
    Landmark.LEFT_EYE: (160.0, 170.0),
    Landmark.RIGHT_EYE: (240.0, 170.0),
    Landmark.NOSE_BASE: (200.0, 210.0),
    Landmark.LEFT_CHEEK: (150.0, 220.0),
    Landmark.RIGHT_CHEEK: (250.0, 220.0),
    Landmark.LEFT_EAR: (105.0, 190.0),
    Landmark.RIGHT_EAR: (295.0, 190.0),
    Landmark.MOUTH_LEFT: (170.0, 250.0),
    Landmark.MOUTH_RIGHT: (230.0, 250.0),
    Landmark.MOUTH_BOTTOM: (200.0, 265.0),
}


@pytest.fixture()
def frontal_observation() -> GeometricObservation:
    return GeometricObservation(
        box=BoundingBox(**FRONTAL_BOX),
        landmarks={name: Point(x, y) for name, (x, y) in FRONTAL_LANDMARKS.items()},
        pitch=2.0,
        yaw=-4.0,
        roll=1.0,
        smiling_probability=0.8,
        left_eye_open_probability=0.9,
        right_eye_open_probability=0.95,
    )


@pytest.fixture()
def frontal_payload() -> dict[str, Any]:
    """The frontal face as a single-face ``DetectionPayload`` document."""
    return {
        "faces": [
            {
                "box": dict(FRONTAL_BOX),
                "landmarks": {name.value: {"x": x, "y": y} for name, (x, y) in FRONTAL_LANDMARKS.items()},
                "pitch": 2.0,
                "yaw": -4.0,
                "roll": 1.0,
                "smiling_probability": 0.8,
                "left_eye_open_probability": 0.9,
                "right_eye_open_probability": 0.95,
            }
        ]
    }
