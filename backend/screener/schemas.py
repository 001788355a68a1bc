from pydantic import BaseModel


class IntakeRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None


class ProfilePatch(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None


class AnswerRequest(BaseModel):
    answer: str


class AnswerResponse(BaseModel):
    accepted: bool
    stage: str | None = None


class TickResponse(BaseModel):
    remaining_sec: int | None = None
    stage: str | None = None
