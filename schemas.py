"""
Database Schemas for Finaxial

Each Pydantic model represents a document shape stored in MongoDB. Field
names are snake_case in Python and camelCase in the database and on the
wire, matching what the web client reads.

- User -> "users"
- Workspace -> "workspaces" (embeds Insight in financialInsights)
- UserActivity -> "useractivities"
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, constr, field_validator
from pydantic.alias_generators import to_camel

from database import to_object_id, utcnow

ObjectIdField = Annotated[ObjectId, BeforeValidator(to_object_id)]


class MongoModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    def to_mongo(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------- Users ----------

class User(MongoModel):
    username: constr(strip_whitespace=True, min_length=1, max_length=50) = Field(..., description="Unique login name")
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., description="bcrypt hash, never returned by queries")
    last_login: Optional[datetime] = Field(None, description="Last successful login")
    full_name: Optional[constr(strip_whitespace=True)] = None
    phone: Optional[constr(strip_whitespace=True)] = None
    company_name: Optional[constr(strip_whitespace=True)] = None
    role: Optional[constr(strip_whitespace=True)] = None
    business_email: Optional[EmailStr] = None
    onboarding_completed: bool = False
    created_at: datetime = Field(default_factory=utcnow)


# ---------- Charts ----------

class ChartDataset(BaseModel):
    """One series of a chart; styling keys (backgroundColor, borderColor...) pass through."""
    model_config = ConfigDict(extra="allow")

    label: Optional[str] = None
    data: List[Optional[float]] = Field(default_factory=list)


class ChartData(BaseModel):
    labels: List[Union[str, float]] = Field(default_factory=list)
    datasets: List[ChartDataset] = Field(default_factory=list)


class _Chart(BaseModel):
    """Chart config as rendered by the client; keys beyond these (description...) are kept."""
    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    data: ChartData
    options: Dict[str, Any] = Field(default_factory=dict)


class BarChart(_Chart):
    type: Literal["bar"] = "bar"


class LineChart(_Chart):
    type: Literal["line"] = "line"


class PieChart(_Chart):
    type: Literal["pie"] = "pie"


class DoughnutChart(_Chart):
    type: Literal["doughnut"] = "doughnut"


class RadarChart(_Chart):
    type: Literal["radar"] = "radar"


Chart = Annotated[
    Union[BarChart, LineChart, PieChart, DoughnutChart, RadarChart],
    Field(discriminator="type"),
]


# ---------- Assistant chat ----------

class _ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    text: str
    timestamp: datetime


class UserMessage(_ChatMessage):
    sender: Literal["user"]


class AssistantMessage(_ChatMessage):
    sender: Literal["assistant"]


ChatMessage = Annotated[Union[UserMessage, AssistantMessage], Field(discriminator="sender")]


# ---------- Workspaces ----------

class Insight(MongoModel):
    """Per-file analysis result, embedded in a workspace"""
    id: ObjectIdField = Field(default_factory=ObjectId, alias="_id")
    file_name: str = Field(..., min_length=1, description="Name of the analyzed file")
    summary: str = Field(..., min_length=1)
    insights: str = Field(..., min_length=1)
    recommendations: str = Field(..., min_length=1)
    charts: List[Chart] = Field(default_factory=list)
    assistant_chat: List[ChatMessage] = Field(default_factory=list)
    insight_cards: Optional[List[Dict[str, Any]]] = Field(None, description="Numeric cards shown above the insight")
    raw_response: Optional[str] = Field(None, description="Unparsed model output")
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("charts", "assistant_chat", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    @field_validator("charts", mode="before")
    @classmethod
    def _lowercase_chart_type(cls, value):
        # AI output capitalizes types ("Bar", "Line")
        if not isinstance(value, list):
            return value
        return [
            dict(chart, type=chart["type"].lower())
            if isinstance(chart, dict) and isinstance(chart.get("type"), str) else chart
            for chart in value
        ]


class Workspace(MongoModel):
    """Named container owned by a user"""
    name: constr(strip_whitespace=True, min_length=1, max_length=100) = Field(..., description="Workspace name")
    description: Optional[constr(max_length=500)] = None
    owner: ObjectIdField
    members: List[ObjectIdField] = Field(default_factory=list)
    financial_insights: List[Insight] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ---------- Activity ----------

ActivityType = Literal["workspace_created", "report_generated", "insight_generated", "csv_uploaded"]


class UserActivity(MongoModel):
    user: ObjectIdField
    workspace: ObjectIdField
    activity_type: ActivityType
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
