from typing import List, Optional
from pydantic import BaseModel, Field, model_validator
from datetime import datetime, timezone
from enum import Enum
import uuid

from .belief import Belief
from .term import Term


SHORT_ID_LENGTH = 6


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def short_id(item_id: Optional[str], length: int = SHORT_ID_LENGTH) -> str:
    return item_id[:length] if item_id else "-" * length


class Status(str, Enum):
    """Thought lifecycle status"""
    PENDING = "pending"
    ACTIVE = "active"
    WAITING = "waiting"
    DONE = "done"
    FAILED = "failed"


class TaskStatus(str, Enum):
    """Run state of a whole task tree, recorded on its root"""
    RUNNING = "running"
    PAUSED = "paused"


class Category(str, Enum):
    """Kind of work or knowledge a Thought carries"""
    INPUT = "input"
    GOAL = "goal"
    STRATEGY = "strategy"
    OUTCOME = "outcome"
    FACT = "fact"
    QUERY = "query"
    USER_PROMPT = "user_prompt"
    SYSTEM = "system"
    LOG = "log"


class ThoughtMetadata(BaseModel):
    """Bookkeeping attached to a Thought"""
    root_id: Optional[str] = Field(None, description="Root of the task tree; defaults to the thought itself")
    parent_id: Optional[str] = None
    rule_id: Optional[str] = Field(None, description="Last rule applied to this thought")
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    priority: Optional[float] = Field(None, description="Overrides the belief score as sampling weight")
    error: Optional[str] = None
    retries: int = 0
    waiting_for: Optional[str] = Field(None, description="Prompt id this thought is suspended on")
    response_to: Optional[str] = None
    prompt_id: Optional[str] = Field(None, description="Correlation id carried by user prompts")
    tags: List[str] = Field(default_factory=list)
    provenance: Optional[str] = None
    embedded_at: Optional[datetime] = None
    task_status: Optional[TaskStatus] = Field(None, description="Set on roots only; a paused root holds back its whole tree")


class Thought(BaseModel):
    """A unit of work or knowledge moving through the engine"""
    id: str = Field(default_factory=new_id)
    category: Category
    content: Term
    belief: Belief = Field(default_factory=Belief)
    status: Status = Field(default=Status.PENDING)
    metadata: ThoughtMetadata = Field(default_factory=ThoughtMetadata)

    @model_validator(mode="after")
    def _default_root(self) -> "Thought":
        if self.metadata.root_id is None:
            self.metadata.root_id = self.id
        return self

    @property
    def root_id(self) -> str:
        return self.metadata.root_id or self.id

    def spawn(self, category: Category, content: Term, provenance: str, **fields) -> "Thought":
        """Create a child thought in the same task tree"""

        belief = fields.pop("belief", None)
        if belief is None:
            belief = Belief()
        metadata = ThoughtMetadata(
            root_id=self.root_id,
            parent_id=self.id,
            provenance=provenance,
            **fields
        )
        return Thought(category=category, content=content, belief=belief, metadata=metadata)


class RuleMetadata(BaseModel):
    priority: Optional[float] = None
    description: Optional[str] = None
    provenance: Optional[str] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None


class Rule(BaseModel):
    """Declarative pattern -> action rewrite applied through unification"""
    id: str = Field(default_factory=new_id)
    pattern: Term
    action: Term
    belief: Belief = Field(default_factory=Belief)
    metadata: RuleMetadata = Field(default_factory=RuleMetadata)

    @property
    def priority(self) -> float:
        return self.metadata.priority if self.metadata.priority is not None else 0.0
