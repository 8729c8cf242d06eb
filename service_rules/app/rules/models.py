"""
Rule tree and result data models for the rule engine service.
"""

from typing import Dict, Any, Optional, List, Mapping, Tuple, Union
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, Field

from .constraints import Constraint
from .status import Status

Facts = Mapping[str, str]


class _RuleNode:
    """Behaviour shared by every rule node."""

    def check(self, facts: Facts) -> "RuleResult":
        """Check this node and its descendants against ``facts``."""
        from .engine import check
        return check(self, facts)


def _freeze_children(node, rules) -> None:
    object.__setattr__(node, "rules", tuple(rules))


@dataclass(frozen=True)
class And(_RuleNode):
    """All children must be ``Met``."""
    rules: Tuple["Rule", ...] = ()

    def __post_init__(self):
        _freeze_children(self, self.rules)


@dataclass(frozen=True)
class Or(_RuleNode):
    """At least one child must be ``Met``."""
    rules: Tuple["Rule", ...] = ()

    def __post_init__(self):
        _freeze_children(self, self.rules)


@dataclass(frozen=True)
class NumberOf(_RuleNode):
    """At least ``n`` children must be ``Met``. ``n`` is not bounded by the child count."""
    n: int
    rules: Tuple["Rule", ...] = ()

    def __post_init__(self):
        _freeze_children(self, self.rules)


@dataclass(frozen=True)
class Leaf(_RuleNode):
    """A constraint bound to one named fact."""
    description: str
    field: str
    constraint: Constraint


Rule = Union[And, Or, NumberOf, Leaf]

COMBINATOR_TYPES = (And, Or, NumberOf)


@dataclass(frozen=True)
class RuleResult:
    """Result of checking a rule tree; mirrors the tree's shape."""
    name: str
    status: Status
    children: Tuple["RuleResult", ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "children", tuple(self.children))


@dataclass
class StoredRule:
    """A named rule definition held by the registry."""
    rule_id: str
    rule: Rule
    name: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


class RuleResultModel(BaseModel):
    """Wire model for a result tree."""
    name: str = Field(..., description="Human-friendly description of the rule")
    status: Status = Field(..., description="Status of this node")
    children: List["RuleResultModel"] = Field(default_factory=list, description="Results of any sub-rules")


RuleResultModel.model_rebuild()


class RuleCheckRequest(BaseModel):
    """Request model for checking an inline rule tree."""
    rule: Dict[str, Any] = Field(..., description="Encoded rule tree")
    facts: Dict[str, str] = Field(default_factory=dict, description="Observed facts")


class FactsRequest(BaseModel):
    """Request model for checking a registered rule."""
    facts: Dict[str, str] = Field(default_factory=dict, description="Observed facts")


class RuleCreateRequest(BaseModel):
    """Request model for registering a rule."""
    rule_id: Optional[str] = Field(None, description="Rule ID, generated when omitted")
    name: Optional[str] = Field(None, description="Rule name")
    rule: Dict[str, Any] = Field(..., description="Encoded rule tree")


class RuleUpdateRequest(BaseModel):
    """Request model for replacing a registered rule."""
    name: Optional[str] = Field(None, description="Rule name")
    rule: Dict[str, Any] = Field(..., description="Encoded rule tree")


class RuleResponse(BaseModel):
    """Response model for rule operations."""
    rule_id: str
    name: Optional[str]
    rule: Dict[str, Any]
    created_at: datetime
    updated_at: datetime


class RuleListResponse(BaseModel):
    """Response model for rule list."""
    rules: List[RuleResponse]
    total: int
