import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field as PydanticField
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from core.config import DEFAULT_RADIUS_METERS, MAX_SITE_RADIUS, MIN_SITE_RADIUS
from core.deps import require_admin_role
from db.session import get_session
from models.site import Site, SiteUser
from models.user import User
from services.activity_log_service import log_activity

logger = logging.getLogger(__name__)

# --- Router Definition ---
router = APIRouter()


# --- Pydantic Data Models ---


class SiteBase(BaseModel):
    name: str = PydanticField(..., min_length=1)
    site_code: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: str = "India"
    latitude: Optional[float] = PydanticField(default=None, ge=-90, le=90)
    longitude: Optional[float] = PydanticField(default=None, ge=-180, le=180)
    radius: int = PydanticField(default=DEFAULT_RADIUS_METERS, ge=MIN_SITE_RADIUS, le=MAX_SITE_RADIUS)
    is_active: bool = True


class SiteCreate(SiteBase):
    site_id: str = PydanticField(..., min_length=1, description="Unique site identifier")


# Update model: all optional, validated only if sent
class SiteUpdate(BaseModel):
    name: Optional[str] = PydanticField(default=None, min_length=1)
    site_code: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = PydanticField(default=None, ge=-90, le=90)
    longitude: Optional[float] = PydanticField(default=None, ge=-180, le=180)
    radius: Optional[int] = PydanticField(default=None, ge=MIN_SITE_RADIUS, le=MAX_SITE_RADIUS)
    is_active: Optional[bool] = None


class SiteAssignment(BaseModel):
    user_id: str


def _get_site_or_404(session: Session, site_id: str) -> Site:
    site = session.get(Site, site_id)
    if not site:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Site with ID '{site_id}' not found.",
        )
    return site


def _commit(session: Session, action: str) -> None:
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Error trying to %s: %s", action, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Could not {action}.",
        )


# --- API Endpoints ---


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_site(
    site_in: SiteCreate,
    session: Annotated[Session, Depends(get_session)],
    admin_user: Annotated[dict, Depends(require_admin_role)],
):
    if session.get(Site, site_in.site_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Site with ID '{site_in.site_id}' already exists.",
        )

    site = Site(**site_in.model_dump())
    session.add(site)
    _commit(session, "create site")
    log_activity(
        session,
        user_id=admin_user["uid"],
        site_id=site.site_id,
        action="CREATE",
        module="sites",
        description=f"Site {site.site_id} created",
    )
    session.refresh(site)
    return {"success": True, "data": site}


@router.get("/")
def list_sites(
    session: Annotated[Session, Depends(get_session)],
    admin_user: Annotated[dict, Depends(require_admin_role)],
):
    sites = session.exec(select(Site).order_by(Site.site_id)).all()
    return {"success": True, "data": sites}


@router.get("/{site_id}")
def read_site(
    site_id: str,
    session: Annotated[Session, Depends(get_session)],
    admin_user: Annotated[dict, Depends(require_admin_role)],
):
    return {"success": True, "data": _get_site_or_404(session, site_id)}


@router.put("/{site_id}")
def update_site(
    site_id: str,
    site_update: SiteUpdate,
    session: Annotated[Session, Depends(get_session)],
    admin_user: Annotated[dict, Depends(require_admin_role)],
):
    site = _get_site_or_404(session, site_id)

    # Only apply fields the client actually sent
    for key, value in site_update.model_dump(exclude_unset=True).items():
        setattr(site, key, value)

    session.add(site)
    _commit(session, "update site")
    session.refresh(site)
    return {"success": True, "data": site}


@router.post("/{site_id}/users", status_code=status.HTTP_201_CREATED)
def assign_user(
    site_id: str,
    assignment: SiteAssignment,
    session: Annotated[Session, Depends(get_session)],
    admin_user: Annotated[dict, Depends(require_admin_role)],
):
    _get_site_or_404(session, site_id)
    if not session.get(User, assignment.user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User with ID '{assignment.user_id}' not found.",
        )

    existing = session.exec(
        select(SiteUser)
        .where(SiteUser.site_id == site_id)
        .where(SiteUser.user_id == assignment.user_id)
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User '{assignment.user_id}' is already assigned to site '{site_id}'.",
        )

    link = SiteUser(site_id=site_id, user_id=assignment.user_id)
    session.add(link)
    _commit(session, "assign user to site")
    session.refresh(link)
    return {"success": True, "data": link}


@router.delete("/{site_id}/users/{user_id}")
def unassign_user(
    site_id: str,
    user_id: str,
    session: Annotated[Session, Depends(get_session)],
    admin_user: Annotated[dict, Depends(require_admin_role)],
):
    link = session.exec(
        select(SiteUser)
        .where(SiteUser.site_id == site_id)
        .where(SiteUser.user_id == user_id)
    ).first()
    if not link:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{user_id}' is not assigned to site '{site_id}'.",
        )

    session.delete(link)
    _commit(session, "remove user from site")
    return {"success": True, "message": "User removed from site"}
