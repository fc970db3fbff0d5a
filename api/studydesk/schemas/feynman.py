from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class FeynmanState(str, Enum):
    NOT_STARTED = "not_started"
    QUESTIONS_LOADING = "questions_loading"
    ACTIVE = "active"
    EVALUATING = "evaluating"
    EVALUATED = "evaluated"
    ERROR = "error"


class Evaluation(BaseModel):
    overall: str
    strengths: List[str]
    improvements: List[str]
    rating: float = Field(ge=0.0, le=5.0)
    source: str = "model"  # model | heuristic | fallback


class FeynmanSession(BaseModel):
    document_id: str
    state: FeynmanState = FeynmanState.NOT_STARTED
    current_index: int = 0
    questions: List[str] = Field(default_factory=list)
    questions_fallback: bool = False
    responses: Dict[int, str] = Field(default_factory=dict)
    evaluation: Optional[Evaluation] = None
    updated_at: str = ""


class FeynmanStartResponse(BaseModel):
    document_id: str
    questions: List[str]
    questions_fallback: bool


class FeynmanAnswerRequest(BaseModel):
    index: int = Field(ge=0)
    text: str = Field(min_length=1, max_length=8000)


class FeynmanAnswerResponse(BaseModel):
    state: FeynmanState
    next_index: Optional[int] = None
    evaluation: Optional[Evaluation] = None
