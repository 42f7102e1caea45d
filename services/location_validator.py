from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from core.config import DEFAULT_RADIUS_METERS
from models.site import Site
from models.user import WorkLocationType
from services.site_location_service import (
    get_user_sites_with_coordinates,
    get_work_location_type,
)
from utils.geofence import Coordinates, distance_between


class SiteDistance(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    site_id: str
    name: str
    site_code: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: Optional[int] = None
    distance: Optional[int] = None  # rounded meters; None when the site has no coordinates
    in_range: bool = Field(default=False, serialization_alias="inRange")

    @classmethod
    def from_site(cls, site: Site, **extra) -> "SiteDistance":
        return cls(
            site_id=site.site_id,
            name=site.name,
            site_code=site.site_code,
            address=site.address,
            city=site.city,
            state=site.state,
            latitude=site.latitude,
            longitude=site.longitude,
            radius=site.radius,
            **extra,
        )


class LocationValidationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_valid: bool = Field(serialization_alias="isValid")
    is_wfh: bool = Field(serialization_alias="isWFH")
    allowed_sites: List[SiteDistance] = Field(default_factory=list, serialization_alias="allowedSites")
    all_sites: List[SiteDistance] = Field(default_factory=list, serialization_alias="allSites")
    nearest_site: Optional[SiteDistance] = Field(default=None, serialization_alias="nearestSite")
    message: str

    def allows_site(self, site_id: str) -> bool:
        return any(site.site_id == site_id for site in self.allowed_sites)

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True)


def validate_user_location(
    session: Session,
    user_id: str,
    coords: Optional[Coordinates],
    radius_meters: int = DEFAULT_RADIUS_METERS,
) -> LocationValidationResult:
    """
    Decide whether a user standing at `coords` may check in at any assigned site.

    WFH users are exempt and need no coordinates. Everyone else must be within
    the radius of at least one site that has coordinates. A site's own radius
    overrides `radius_meters`. Missing data yields an invalid result with an
    explanatory message, never an exception.
    """
    if get_work_location_type(session, user_id) is WorkLocationType.WFH:
        sites = get_user_sites_with_coordinates(session, user_id)
        return LocationValidationResult(
            is_valid=True,
            is_wfh=True,
            allowed_sites=[SiteDistance.from_site(site) for site in sites],
            message="Work from home user - can check in from anywhere",
        )

    # NaN/inf would poison every distance below
    if coords is None or not coords.is_finite():
        return LocationValidationResult(
            is_valid=False,
            is_wfh=False,
            message="Location coordinates required for non-WFH check-in",
        )

    sites = get_user_sites_with_coordinates(session, user_id)
    if not sites:
        return LocationValidationResult(
            is_valid=False,
            is_wfh=False,
            message="No sites assigned to this user",
        )

    measured = []
    nearest: Optional[SiteDistance] = None
    nearest_exact: Optional[float] = None
    for site in sites:
        if site.latitude is None or site.longitude is None:
            measured.append(SiteDistance.from_site(site, distance=None, in_range=False))
            continue

        exact = distance_between(coords, Coordinates(site.latitude, site.longitude))
        site_radius = site.radius or radius_meters
        entry = SiteDistance.from_site(
            site,
            distance=round(exact),
            in_range=exact <= site_radius,
        )
        entry.radius = site_radius
        measured.append(entry)
        # Strict comparison keeps the first of equally distant sites
        if nearest_exact is None or exact < nearest_exact:
            nearest, nearest_exact = entry, exact

    allowed = [site for site in measured if site.in_range]

    if allowed:
        message = f"{len(allowed)} site(s) within range"
    elif nearest is not None:
        message = (
            f"You are {nearest.distance}m away from the nearest site ({nearest.name}). "
            f"Must be within {radius_meters}m."
        )
    else:
        message = "No sites with coordinates found"

    return LocationValidationResult(
        is_valid=bool(allowed),
        is_wfh=False,
        allowed_sites=allowed,
        all_sites=measured,
        nearest_site=nearest,
        message=message,
    )
