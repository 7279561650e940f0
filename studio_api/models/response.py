from pydantic import BaseModel, Field, field_validator


def _non_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must be a non-empty string")
    return value


class ImageAnalysis(BaseModel):
    objects: list[str] = Field(min_length=1)
    style: str
    mood: str
    lighting: str

    @field_validator("objects", mode="before")
    @classmethod
    def _wrap_single_object(cls, value):
        # Vision models occasionally return a bare string
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("style", "mood", "lighting")
    @classmethod
    def _required_text(cls, value: str) -> str:
        return _non_blank(value)


class AnalyzeResponse(BaseModel):
    analysis: ImageAnalysis
    suggestedPrompt: str

    @field_validator("suggestedPrompt")
    @classmethod
    def _required_prompt(cls, value: str) -> str:
        return _non_blank(value)


class PromptAnalysis(BaseModel):
    intent: str
    tone: str
    style: str

    @field_validator("intent", "tone", "style")
    @classmethod
    def _required_text(cls, value: str) -> str:
        return _non_blank(value)


class EnhanceResponse(BaseModel):
    analysis: PromptAnalysis
    enhancedPrompt: str

    @field_validator("enhancedPrompt")
    @classmethod
    def _required_prompt(cls, value: str) -> str:
        return _non_blank(value)


class GenerateResponse(BaseModel):
    images: list[str]
    provider: str


class ErrorResponse(BaseModel):
    error: str
