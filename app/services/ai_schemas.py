"""
Pydantic models for validating structured JSON responses from Claude AI.

Used by AdvisorySummarizer.parse_response() in advisory_service.py.
"""

from pydantic import BaseModel, ConfigDict, Field


# --- Advisory Summary (summarize_correlations) ---


class AdvisorySummarySchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    possible_triggers: list[str] = Field(alias="possibleTriggers")
    explanation: str
