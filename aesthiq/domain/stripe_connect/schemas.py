from typing import Optional

from pydantic import BaseModel, Field


class StripeRequirements(BaseModel):
    currently_due: list[str] = Field(default_factory=list)
    eventually_due: list[str] = Field(default_factory=list)
    past_due: list[str] = Field(default_factory=list)


class StripeAccountStatus(BaseModel):
    """Live view of a clinic's Connect account; not stored"""

    hasAccount: bool
    accountId: Optional[str] = None
    onboardingUrl: Optional[str] = None
    payoutsEnabled: bool = False
    chargesEnabled: bool = False
    transfersActive: bool = False
    hasExternalAccount: bool = False
    businessFeaturesEnabled: bool = False
    capabilities: dict = Field(default_factory=dict)
    requirements: StripeRequirements = Field(default_factory=StripeRequirements)


class OnboardingResponse(BaseModel):
    accountId: str
    onboardingUrl: str
