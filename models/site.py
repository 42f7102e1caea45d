from typing import Optional

from sqlmodel import Field, SQLModel, UniqueConstraint

# Defines the Structure of Data for Comparing an Employee Check-in to Expected Location


# Site w/ Optional Circular Geofence
class Site(SQLModel, table=True):
    __tablename__ = "sites"

    site_id: str = Field(primary_key=True, description="Unique site identifier")
    name: str = Field(..., description="Human-friendly site name")
    site_code: Optional[str] = Field(default=None, index=True)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: str = Field(default="India")
    latitude: Optional[float] = Field(default=None, description="Latitude of site center")
    longitude: Optional[float] = Field(default=None, description="Longitude of site center")
    radius: Optional[int] = Field(default=500, description="Allowed check-in radius in meters")
    is_active: bool = Field(default=True)


# Many-to-many link between users and the sites they may check in at
class SiteUser(SQLModel, table=True):
    __tablename__ = "site_user"
    __table_args__ = (UniqueConstraint("site_id", "user_id", name="uq_site_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    site_id: str = Field(foreign_key="sites.site_id", index=True)
    user_id: str = Field(foreign_key="users.user_id", index=True)
