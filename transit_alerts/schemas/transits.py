from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any


class NatalChartIn(BaseModel):
    id: str
    planets: Dict[str, float]  # sidereal longitudes, degrees
    houses: List[float]  # 12 cusps, ascending around the circle
    ayanamsa: Optional[float] = None  # None = server default


class CurrentTransitsRequest(BaseModel):
    chart: NatalChartIn
    orb_deg: Optional[float] = Field(None, ge=0, le=15)


class PredictionsRequest(BaseModel):
    chart: NatalChartIn
    days_ahead: int = 365
    orb_deg: Optional[float] = Field(None, ge=0, le=15)


class RealtimeAlertsRequest(BaseModel):
    chart: NatalChartIn


class AlertOut(BaseModel):
    id: str
    type: str
    priority: str
    message: str
    timestamp: str
    timing: str
    event: Dict[str, Any]
    actions: List[Dict[str, str]] = []


class CurrentTransitsResponse(BaseModel):
    timestamp: str
    chart_id: str
    positions: Dict[str, Any]
    active_aspects: List[Dict[str, Any]]
    active_transits: List[Dict[str, Any]]
    overall_influence: float
    critical_periods: List[Dict[str, Any]]


class PredictionsResponse(BaseModel):
    start: str
    end: str
    calendar: List[Dict[str, Any]]
    alerts: List[AlertOut]
    summary: Dict[str, Any]


class RealtimeAlertsResponse(BaseModel):
    chart_id: str
    alerts: List[AlertOut]


class PositionsResponse(BaseModel):
    jd: float
    timestamp: str
    ayanamsa: float
    tropical: Dict[str, Any]
    sidereal: Dict[str, Any]
    nakshatras: Dict[str, Any]
