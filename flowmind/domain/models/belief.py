from pydantic import BaseModel, Field


DEFAULT_BELIEF_POS = 1.0
DEFAULT_BELIEF_NEG = 1.0


class Belief(BaseModel):
    """Positive/negative evidence counter with a Laplace-smoothed score.

    The score is always strictly between 0 and 1 and is used both as the
    default sampling weight of a Thought and as a rule ranking key.
    """
    pos: float = Field(default=DEFAULT_BELIEF_POS, ge=0)
    neg: float = Field(default=DEFAULT_BELIEF_NEG, ge=0)

    def score(self) -> float:
        return (self.pos + 1) / (self.pos + self.neg + 2)

    def update(self, success: bool) -> None:
        if success:
            self.pos += 1
        else:
            self.neg += 1

    @classmethod
    def trusted(cls) -> "Belief":
        """Belief for externally supplied input (user answers, suggestions)"""
        return cls(pos=1.0, neg=0.0)
