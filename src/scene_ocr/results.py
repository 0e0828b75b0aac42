"""Result types produced by the OCR pipeline."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class TextBox:
    """Quadrilateral around a text region.

    ``points`` are integer pixel coordinates ordered top-left, top-right,
    bottom-right, bottom-left.
    """
    points: Tuple[Tuple[int, int], ...]
    score: float

    def __post_init__(self):
        if len(self.points) != 4:
            raise ValueError(f"TextBox needs 4 points, got {len(self.points)}")


@dataclass
class Angle:
    """Orientation verdict for one text region."""
    is_rotated: bool = False
    score: float = 0.0


@dataclass
class TextLine:
    """Transcribed text with one confidence per emitted character."""
    text: str = ""
    scores: List[float] = field(default_factory=list)


@dataclass
class OCRResult:
    """One detected region: its box, orientation and transcription."""
    box: TextBox
    angle: Angle
    line: TextLine

    @property
    def text(self) -> str:
        return self.line.text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.line.text,
            "char_scores": [float(s) for s in self.line.scores],
            "box": [{"x": int(x), "y": int(y)} for x, y in self.box.points],
            "box_score": float(self.box.score),
            "angle": {
                "is_rotated": bool(self.angle.is_rotated),
                "score": float(self.angle.score),
            },
        }
