from typing import Any, Optional

from pydantic import BaseModel


class Submission(BaseModel):
    # Raw values; coercion and bounds live in scoring so bad numbers get
    # their own rejection codes instead of a generic validation error.
    name: Any = None
    time: Any = None
    moves: Any = None


class ScoreEntry(BaseModel):
    name: str
    time: int
    moves: int


class Rejection(BaseModel):
    code: str
    message: str
    retry_after: Optional[int] = None

    def body(self) -> dict:
        return {"ok": False, "code": self.code, "message": self.message}
