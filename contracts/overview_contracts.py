"""Overview contracts: the eleven-section document under evaluation."""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from enum import Enum


class OverviewSection(str, Enum):
    """Sections of an Overview, in declaration order."""
    PITCH = "pitch"
    PROBLEM_SUMMARY = "problem_summary"
    SOLUTION = "solution"
    COMPETITION = "competition"
    PERSONAS = "personas"
    CORE_FEATURES = "core_features"
    UNIQUE_VALUE = "unique_value"
    MONETISATION = "monetisation"
    MARKET_SIZE = "market_size"
    BUILD_NOTES = "build_notes"
    RISKS = "risks"


SECTION_TITLES: Dict[OverviewSection, str] = {
    OverviewSection.PITCH: "Refined Elevator Pitch",
    OverviewSection.PROBLEM_SUMMARY: "Problem Summary",
    OverviewSection.SOLUTION: "Solution Description",
    OverviewSection.COMPETITION: "Competition Summary",
    OverviewSection.PERSONAS: "Personas",
    OverviewSection.CORE_FEATURES: "Core Features",
    OverviewSection.UNIQUE_VALUE: "Unique Value Proposition",
    OverviewSection.MONETISATION: "Monetisation Model",
    OverviewSection.MARKET_SIZE: "Market Size",
    OverviewSection.BUILD_NOTES: "Build Notes",
    OverviewSection.RISKS: "Risks & Mitigations",
}


class Persona(BaseModel):
    """A target persona described in the overview."""
    name: str = Field(..., description="Persona name, e.g. 'Busy Ops Lead'")
    role: Optional[str] = Field(None, description="Job title or role")
    summary: str = Field("", description="One or two sentences about the persona")
    needs: List[str] = Field(default_factory=list, description="What this persona needs")


class MonetisationModel(BaseModel):
    """One way the product makes money."""
    model: str = Field(..., description="e.g. Subscription, Usage-based, Marketplace fee")
    description: str = Field("", description="How the model applies to this product")
    pricing_notes: Optional[str] = Field(None, description="Price points or packaging notes")


class RiskItem(BaseModel):
    """A risk and how it is mitigated."""
    risk: str = Field(..., description="The risk")
    mitigation: str = Field("", description="How the risk is mitigated")


class Overview(BaseModel):
    """The structured business-idea document.

    All eleven sections are required. Text sections may be empty strings and
    list sections may be empty lists, but no section may be absent or null.
    """
    model_config = {"extra": "forbid"}

    pitch: str = Field(..., description="Refined elevator pitch")
    problem_summary: str = Field(..., description="The problem being solved")
    solution: str = Field(..., description="Solution description")
    competition: str = Field(..., description="Competition summary")
    personas: List[Persona] = Field(..., description="Target personas")
    core_features: List[str] = Field(..., description="Core product features")
    unique_value: str = Field(..., description="Unique value proposition")
    monetisation: List[MonetisationModel] = Field(..., description="Monetisation models")
    market_size: str = Field(..., description="Market size estimate")
    build_notes: str = Field(..., description="Build considerations")
    risks: List[RiskItem] = Field(..., description="Risks and mitigations")


class IdeaContext(BaseModel):
    """Context about the idea passed to every generation call."""
    mode: Optional[str] = Field(None, description="explore-idea, solve-problem or surprise-me")
    user_input: Optional[str] = Field(None, description="The founder's original idea or problem text")
    target_market: Optional[str] = None
    target_country: Optional[str] = None
    budget: Optional[str] = None
    timescales: Optional[str] = None

    def describe(self) -> str:
        """Render the context as prompt lines."""
        parts = []
        if self.mode:
            parts.append(f"Mode: {self.mode}")
        if self.user_input:
            parts.append(f"Original idea: {self.user_input}")
        if self.target_market:
            parts.append(f"Target market: {self.target_market}")
        if self.target_country:
            parts.append(f"Target country: {self.target_country}")
        if self.budget:
            parts.append(f"Budget: {self.budget}")
        if self.timescales:
            parts.append(f"Timeline: {self.timescales}")
        return "\n".join(parts) or "No additional context."
