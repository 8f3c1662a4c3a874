from .transits import (
    AlertOut,
    CurrentTransitsRequest,
    CurrentTransitsResponse,
    NatalChartIn,
    PositionsResponse,
    PredictionsRequest,
    PredictionsResponse,
    RealtimeAlertsRequest,
    RealtimeAlertsResponse,
)
