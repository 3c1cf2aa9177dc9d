"""Business setup router"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .service import compute_setup_status, get_user_organization

router = APIRouter(prefix="/api/clinic", tags=["Business Setup"])


class SetupStatusResponse(BaseModel):
    stripeConnected: bool
    hasSubscription: bool
    hasServices: bool
    hasMemberships: bool
    hasRewards: bool
    hasPatients: bool
    allComplete: bool


@router.get("/setup-status", response_model=SetupStatusResponse)
async def get_setup_status(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return compute_setup_status(db, get_user_organization(db, user))
