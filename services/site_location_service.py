from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from core.exceptions import StoreError
from models.site import Site, SiteUser
from models.user import User, WorkLocationType


def get_work_location_type(session: Session, user_id: str) -> Optional[WorkLocationType]:
    """None when the user is unknown or has no classification."""
    try:
        user = session.get(User, user_id)
    except SQLAlchemyError as e:
        raise StoreError("get user", e)
    if not user:
        return None
    return WorkLocationType.from_raw(user.work_location_type)


def get_user_sites_with_coordinates(session: Session, user_id: str) -> List[Site]:
    """Sites assigned to the user, in assignment order. Empty is not an error."""
    try:
        return list(
            session.exec(
                select(Site)
                .join(SiteUser, SiteUser.site_id == Site.site_id)
                .where(SiteUser.user_id == user_id)
                .order_by(SiteUser.id)
            ).all()
        )
    except SQLAlchemyError as e:
        raise StoreError("get assigned sites", e)
