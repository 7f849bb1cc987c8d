"""
Pydantic request/response models.

Rationale:
- Define explicit contracts for the relay envelopes and the roast result.
- The roast result is lenient: every field is optional and unknown keys are
  kept, so a well-formed model reply passes through unchanged.
"""

from typing import Any, List, Optional, Union
from pydantic import BaseModel, ConfigDict


class ToxicTrait(BaseModel):
    model_config = ConfigDict(extra="allow")

    trait: Optional[str] = None
    roast: Optional[str] = None


class MbtiGuess(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    roast: Optional[str] = None


class AnalysisResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    danger_index: Optional[Union[int, float]] = None  # 0.0 - 5.0, int kept as int
    danger_level: Optional[str] = None
    warning_message: Optional[str] = None
    toxic_traits: Optional[List[ToxicTrait]] = None
    mbti_guess: Optional[MbtiGuess] = None
    appearance_roast: Optional[str] = None
    survival_guide: Optional[str] = None


class ImageUpload(BaseModel):
    """One image of an upload batch, held in memory for a single request."""

    filename: str
    content_type: str
    data: bytes


class SuccessEnvelope(BaseModel):
    success: bool = True
    data: Any


class ErrorEnvelope(BaseModel):
    success: bool = False
    message: str
    raw: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    message: str
