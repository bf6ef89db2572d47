"""
Input models for raw recognition output.

These mirror what the recognition pipeline hands over: tread gauge
samples, defect detections and sidewall text. They are deliberately
permissive; the decoders decide what is usable.
"""

from typing import Optional

from pydantic import BaseModel, Field


class RawTreadReading(BaseModel):
    """Tread depth samples at three lateral points."""
    inner: float = Field(..., description="Depth at the inner shoulder")
    center: float = Field(..., description="Depth at the tread center")
    outer: float = Field(..., description="Depth at the outer shoulder")
    unit: str = Field(default="mm", description="mm, in or 32nds")
    confidence: float = Field(default=0.0, description="Scanner confidence 0-1")
    quality_score: int = Field(default=0, description="Scan quality 0-100")


class RawBoundingBox(BaseModel):
    """Detection region in normalized image coordinates."""
    left: float
    top: float
    right: float
    bottom: float


class RawDefectDetection(BaseModel):
    """One detection from the defect classifier."""
    label: str = Field(..., description="Classifier label, e.g. 'crack'")
    confidence: float = Field(default=0.0, description="Detection confidence 0-1")
    bounding_box: Optional[RawBoundingBox] = Field(
        default=None,
        description="Region of the detection, if the model reports one"
    )


class RecognitionOutput(BaseModel):
    """
    Everything recognized from one tire capture.

    Any part may be missing; missing parts decode to empty results.
    """
    tread: Optional[RawTreadReading] = Field(default=None, description="Tread gauge samples")
    defects: list[RawDefectDetection] = Field(
        default_factory=list,
        description="Defect detections from the classifier"
    )
    size_text: Optional[str] = Field(
        default=None,
        description="Sidewall size marking, e.g. '225/45R17 94W XL'"
    )
    size_confidence: float = Field(default=0.0, description="OCR confidence for size text")
    dot_text: Optional[str] = Field(
        default=None,
        description="DOT marking, e.g. 'DOT 3D4B XYZ1 2419'"
    )
    dot_confidence: float = Field(default=0.0, description="OCR confidence for DOT text")
    tread_image_path: Optional[str] = Field(default=None, description="Captured tread image")
    sidewall_image_path: Optional[str] = Field(default=None, description="Captured sidewall image")

    @classmethod
    def example(cls) -> "RecognitionOutput":
        """A representative capture with moderate wear and one puncture."""
        return cls(
            tread=RawTreadReading(
                inner=5.0,
                center=3.5,
                outer=4.8,
                unit="mm",
                confidence=0.91,
                quality_score=88,
            ),
            defects=[RawDefectDetection(label="puncture", confidence=0.82)],
            size_text="225/45R17 94W XL",
            size_confidence=0.92,
            dot_text="DOT 3DXX XXXX 2419",
            dot_confidence=0.88,
            tread_image_path="captures/tread_0001.jpg",
            sidewall_image_path="captures/sidewall_0001.jpg",
        )

    model_config = {
        "json_schema_extra": {
            "example": {
                "tread": {
                    "inner": 5.0,
                    "center": 3.5,
                    "outer": 4.8,
                    "unit": "mm",
                    "confidence": 0.91,
                    "quality_score": 88,
                },
                "defects": [
                    {"label": "puncture", "confidence": 0.82},
                ],
                "size_text": "225/45R17 94W XL",
                "size_confidence": 0.92,
                "dot_text": "DOT 3DXX XXXX 2419",
                "dot_confidence": 0.88,
            }
        }
    }
