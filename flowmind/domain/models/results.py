from typing import Optional
from pydantic import BaseModel, Field

from .term import Term
from .thought import Status


class ToolResult(BaseModel):
    """Tagged outcome returned by a tool.

    Replaces string-prefixed error atoms: a failure carries a code and a
    message instead of being sniffed out of a returned value.
    """
    ok: bool
    value: Optional[Term] = None
    code: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, value: Optional[Term] = None, code: Optional[str] = None, message: Optional[str] = None) -> "ToolResult":
        return cls(ok=True, value=value, code=code, message=message)

    @classmethod
    def failure(cls, code: str, message: Optional[str] = None) -> "ToolResult":
        return cls(ok=False, code=code, message=message)

    def describe(self) -> str:
        if self.message:
            return f"{self.code}: {self.message}"
        return self.code or ("ok" if self.ok else "error")


class ActionResult(BaseModel):
    """Outcome of running a rule action or a fallback for one thought"""
    success: bool
    final_status: Optional[Status] = Field(None, description="Status to settle on when successful")
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def done(cls) -> "ActionResult":
        return cls(success=True, final_status=Status.DONE)

    @classmethod
    def waiting(cls) -> "ActionResult":
        return cls(success=True, final_status=Status.WAITING)

    @classmethod
    def failed(cls, error: str, error_code: Optional[str] = None) -> "ActionResult":
        return cls(success=False, final_status=Status.FAILED, error=error, error_code=error_code)
