from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query, Request

from ..schemas import (
    CurrentTransitsRequest,
    CurrentTransitsResponse,
    NatalChartIn,
    PositionsResponse,
    PredictionsRequest,
    PredictionsResponse,
    RealtimeAlertsRequest,
    RealtimeAlertsResponse,
)
from ..services.constants import nakshatra_for
from ..services.errors import ValidationError
from ..services.models import NatalChart
from ..services.registry import EngineRegistry

router = APIRouter(prefix="/v1/transits", tags=["transits"])


def _registry(request: Request) -> EngineRegistry:
    return request.app.state.registry


def _chart(request: Request, chart_in: NatalChartIn) -> NatalChart:
    ayanamsa = chart_in.ayanamsa
    if ayanamsa is None:
        ayanamsa = _registry(request).settings.default_ayanamsa
    return NatalChart.from_longitudes(chart_in.id, chart_in.planets, chart_in.houses, ayanamsa)


@router.get("/positions", response_model=PositionsResponse)
def positions_route(
    request: Request,
    at: Optional[str] = Query(None, description="ISO-8601 instant with offset; default now"),
    ayanamsa: Optional[float] = None,
):
    reg = _registry(request)
    when = reg.clock()
    if at is not None:
        try:
            when = datetime.fromisoformat(at)
        except ValueError as exc:
            raise ValidationError("at must be an ISO-8601 datetime", field="at", value=at) from exc
    provider = reg.provider(ayanamsa if ayanamsa is not None else reg.settings.default_ayanamsa)
    snap = provider.positions_at(when)
    out = snap.to_dict()
    out["nakshatras"] = {k: nakshatra_for(v.longitude) for k, v in snap.sidereal.items()}
    return PositionsResponse(**out)


@router.post("/current", response_model=CurrentTransitsResponse)
def current_transits_route(req: CurrentTransitsRequest, request: Request):
    orch = _registry(request).orchestrator(_chart(request, req.chart), orb=req.orb_deg)
    return CurrentTransitsResponse(**orch.get_current_transit_analysis())


@router.post("/predictions", response_model=PredictionsResponse)
def predictions_route(req: PredictionsRequest, request: Request):
    orch = _registry(request).orchestrator(_chart(request, req.chart), orb=req.orb_deg)
    return PredictionsResponse(**orch.generate_transit_predictions(req.days_ahead))


@router.post("/alerts/realtime", response_model=RealtimeAlertsResponse)
def realtime_alerts_route(req: RealtimeAlertsRequest, request: Request):
    chart = _chart(request, req.chart)
    alerts = _registry(request).orchestrator(chart).process_realtime_alerts()
    return RealtimeAlertsResponse(chart_id=chart.id, alerts=[a.to_dict() for a in alerts])
