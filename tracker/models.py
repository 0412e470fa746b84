"""
Request/response payloads passed between the position client, the sink and the API.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

# ISS average altitude in km
ISS_ALTITUDE_KM = 408.0


class Position(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    altitude: float = ISS_ALTITUDE_KM
    timestamp: int
    azimuth: Optional[float] = None
    elevation: Optional[float] = None
    ra: Optional[float] = None
    dec: Optional[float] = None


class SearchLogEntry(BaseModel):
    city_name: str
    latitude: float
    longitude: float
    passes_found: int = Field(ge=0)
    status: Literal["success", "error"]


class PassRecord(BaseModel):
    name: str
    start_time: datetime
    duration: int  # minutes
    max_elevation: int  # degrees
    direction: str
    norad_id: int


class Location(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    city: str


class PassSearchResponse(BaseModel):
    location: Location
    passes: List[PassRecord]


class Countdown(BaseModel):
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0
