"""Structured lease terms stored in the lease's JSON ``terms`` column."""

from pydantic import BaseModel, ConfigDict, Field


class LeaseTerms(BaseModel):
    """Documented key/value terms attached to a lease.

    Unknown keys are rejected so the JSON column never holds an untyped blob.
    """

    notice_period_days: int = Field(default=30, ge=0, description="Days of notice required to end the lease")
    pets_allowed: bool = Field(default=False, description="Whether pets are permitted")
    utilities_included: list[str] = Field(
        default_factory=list, description="Utilities covered by the rent (e.g. 'water')"
    )
    notes: str | None = Field(default=None, description="Free-form notes")

    model_config = ConfigDict(extra="forbid")


__all__ = ["LeaseTerms"]
