"""
Domain Models

Typed shapes for the values that pass through the caches: profiles from the
backing store, doctor-list filters, profile updates and AI flow payloads.

Cached entries are stored as the model's JSON and validated back into the
model on a hit, so a hit and a miss return the same type.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Profiles
# ============================================================================


class UserProfile(BaseModel):
    """Row of the ``profiles`` table. Unknown columns are kept."""

    model_config = ConfigDict(extra="allow")

    id: str
    email: str
    display_name: str | None = None
    role: Literal["patient", "doctor", "admin"] = "patient"
    subscription_plan: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class DoctorProfile(UserProfile):
    role: Literal["doctor"] = "doctor"
    specialization: str | None = None
    experience_years: int | None = Field(default=None, ge=0)
    consultation_fee: float | None = Field(default=None, ge=0)
    availability: Any = None
    verified: bool | None = None


class DoctorListFilters(BaseModel):
    """
    Filters for the doctor listing.

    Every set field changes the result, so every set field is part of the
    cache key. Unset fields are left out of the key.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    specialization: str | None = Field(default=None, description="Exact specialization match")
    verified: bool | None = Field(default=None, description="Only verified (or unverified) doctors")
    min_fee: float | None = Field(default=None, ge=0, description="Minimum consultation fee")
    max_fee: float | None = Field(default=None, ge=0, description="Maximum consultation fee")
    search: str | None = Field(default=None, description="Case-insensitive name/specialization search")

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class ProfileUpdate(BaseModel):
    """Mutable profile fields. Only fields that are set are sent to the backing store."""

    model_config = ConfigDict(extra="forbid")

    display_name: str | None = None
    subscription_plan: str | None = None
    specialization: str | None = None
    experience_years: int | None = Field(default=None, ge=0)
    consultation_fee: float | None = Field(default=None, ge=0)
    availability: Any = None
    verified: bool | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# ============================================================================
# AI flows
# ============================================================================


class _CamelModel(BaseModel):
    # AI flow payloads use camelCase on the wire
    model_config = ConfigDict(populate_by_name=True)


class DetectDiseaseNameInput(_CamelModel):
    photo_data_uri: str = Field(alias="photoDataUri", description="data:<mime>;base64,<image>")


class DetectDiseaseNameOutput(_CamelModel):
    condition_name: str = Field(alias="conditionName")


class FinalEvaluationInput(_CamelModel):
    photo_data_uri: str = Field(alias="photoDataUri")
    initial_condition: str = Field(alias="initialCondition")
    user_answers: str = Field(alias="userAnswers", description="Proforma answers as a single string")


class FinalEvaluationOutput(_CamelModel):
    condition_name: str = Field(alias="conditionName")
    condition: str
    dos: list[str] = Field(default_factory=list)
    donts: list[str] = Field(default_factory=list)
    recommendations: str = ""
    other_considerations: str = Field(default="", alias="otherConsiderations")
