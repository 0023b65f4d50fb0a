"""Face detectors.

A detector turns an uploaded image into zero or more geometric observations.
Detection itself is not done here: the bundled ``payload`` detector accepts
the JSON output of an on-device landmark detector (for instance a mobile
face detection SDK) and validates it into observations. Other detectors can
be passed to ``create_app`` directly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from facematch.core.observation import BoundingBox, GeometricObservation, Landmark, Point

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


class FaceDetector(Protocol):
    """Protocol for face detectors.

    Implementations are not required to be thread-safe; callers serialize
    access to a shared instance.
    """

    @property
    def model_name(self) -> str:
        """Return the detector identifier string."""
        ...

    def detect(self, image: bytes) -> Sequence[GeometricObservation]:
        """Detect faces in an image.

        Args:
            image: Raw uploaded bytes.

        Returns:
            One observation per detected face; empty when there is no face.
        """
        ...


class DetectionPayloadError(ValueError):
    """Raised when an uploaded detection payload cannot be parsed."""


class PointPayload(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    x: float
    y: float


class BoxPayload(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    left: float
    top: float
    width: float
    height: float


class ObservationPayload(BaseModel):
    """One face as reported by an on-device detector."""

    model_config = ConfigDict(allow_inf_nan=False)

    box: BoxPayload
    landmarks: dict[Landmark, PointPayload] = Field(default_factory=dict)
    pitch: float = Field(default=0.0, ge=-180.0, le=180.0, description="Head rotation around the X axis, degrees")
    yaw: float = Field(default=0.0, ge=-180.0, le=180.0, description="Head rotation around the Y axis, degrees")
    roll: float = Field(default=0.0, ge=-180.0, le=180.0, description="Head rotation around the Z axis, degrees")
    smiling_probability: float | None = Field(default=None, ge=0.0, le=1.0)
    left_eye_open_probability: float | None = Field(default=None, ge=0.0, le=1.0)
    right_eye_open_probability: float | None = Field(default=None, ge=0.0, le=1.0)

    def to_observation(self) -> GeometricObservation:
        return GeometricObservation(
            box=BoundingBox(
                left=self.box.left,
                top=self.box.top,
                width=self.box.width,
                height=self.box.height,
            ),
            landmarks={name: Point(p.x, p.y) for name, p in self.landmarks.items()},
            pitch=self.pitch,
            yaw=self.yaw,
            roll=self.roll,
            smiling_probability=self.smiling_probability,
            left_eye_open_probability=self.left_eye_open_probability,
            right_eye_open_probability=self.right_eye_open_probability,
        )


class DetectionPayload(BaseModel):
    faces: list[ObservationPayload] = Field(default_factory=list)


class PayloadFaceDetector:
    """Reads observations from a JSON ``DetectionPayload`` document."""

    @property
    def model_name(self) -> str:
        return "payload"

    def detect(self, image: bytes) -> list[GeometricObservation]:
        try:
            payload = DetectionPayload.model_validate_json(image)
        except ValidationError as exc:
            raise DetectionPayloadError(f"Invalid detection payload: {exc.error_count()} error(s)") from exc
        return [face.to_observation() for face in payload.faces]


DETECTOR_REGISTRY: dict[str, Callable[[], FaceDetector]] = {
    "payload": PayloadFaceDetector,
}


def create_detector(name: str) -> FaceDetector:
    """Instantiate a registered detector by name."""
    try:
        factory = DETECTOR_REGISTRY[name]
    except KeyError:
        raise KeyError(f"Unknown detector: {name}") from None
    return factory()
