from typing import Optional
from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    model_type: Optional[str] = None  # github or openai; defaults to the record's backend


class ChatResponse(BaseModel):
    reply: str
    is_fallback: bool
