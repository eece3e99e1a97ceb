from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field
from starlette.middleware.cors import CORSMiddleware

from common.config import MonitoringConfig
from common.errors import TripValidationError, UserValidationError
from common.models import AlertThreshold, Location, Schedule, ThresholdType, UserAction
from kent_locations import KENT_LOCATIONS, MOTORWAYS, PRIMARY_ROADS, SECONDARY_ROADS
from monitoring import Orchestrator, create_orchestrator
from trip_service import validate_trip_data

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SERVICE_NAME = "Pre-Route Traffic Monitoring API"
SERVICE_VERSION = "1.0.0"


# ==================== Request models ====================

class LocationModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: str = ""
    name: Optional[str] = None


class ScheduleModel(BaseModel):
    days: List[int]
    window_start: str = Field(..., alias="windowStart")
    window_end: str = Field(..., alias="windowEnd")


class AlertThresholdModel(BaseModel):
    type: ThresholdType
    value: float


class QuietHoursModel(BaseModel):
    enabled: bool = False
    start: str = ""
    end: str = ""


class UserSettingsModel(BaseModel):
    default_nav_app: Optional[str] = Field(None, alias="defaultNavApp")
    quiet_hours: Optional[QuietHoursModel] = Field(None, alias="quietHours")


class CreateUserRequest(BaseModel):
    email: str
    name: str
    settings: Optional[UserSettingsModel] = None


class UpdateUserRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class CreateTripRequest(BaseModel):
    user_id: str = Field(..., alias="userId")
    name: str
    origin: LocationModel
    destination: LocationModel
    schedule: ScheduleModel
    alert_threshold: AlertThresholdModel = Field(..., alias="alertThreshold")


class UpdateTripRequest(BaseModel):
    name: Optional[str] = None
    origin: Optional[LocationModel] = None
    destination: Optional[LocationModel] = None
    schedule: Optional[ScheduleModel] = None
    alert_threshold: Optional[AlertThresholdModel] = Field(None, alias="alertThreshold")
    is_active: Optional[bool] = Field(None, alias="isActive")


class TrafficScenarioRequest(BaseModel):
    route_name: str = Field(..., alias="routeName", min_length=1)
    severity: float = Field(..., ge=0, le=1)
    reason: str = "Traffic incident"


class AlertActionRequest(BaseModel):
    action: UserAction


def _settings_dict(settings: Optional[UserSettingsModel]) -> Optional[Dict[str, Any]]:
    if settings is None:
        return None
    return settings.model_dump(exclude_none=True)


def _to_location(model: LocationModel) -> Location:
    return Location(
        latitude=model.latitude,
        longitude=model.longitude,
        address=model.address,
        name=model.name,
    )


def _to_schedule(model: ScheduleModel) -> Schedule:
    return Schedule(days=tuple(model.days), window_start=model.window_start, window_end=model.window_end)


def _to_threshold(model: AlertThresholdModel) -> AlertThreshold:
    return AlertThreshold(type=model.type, value=model.value)


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


api_router = APIRouter(prefix="/api")


# ==================== Health / status ====================

@api_router.get("/health")
async def health():
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@api_router.get("/status")
async def system_status(orchestrator: Orchestrator = Depends(get_orchestrator)):
    return orchestrator.get_system_status()


# ==================== Users ====================

@api_router.get("/users")
async def list_users(
    offset: int = 0,
    limit: int = 10,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    users = orchestrator.user_service.get_users(offset, limit)
    return {
        "users": [u.to_dict() for u in users],
        "total": orchestrator.user_service.get_total_user_count(),
    }


@api_router.post("/users")
async def create_user(request: CreateUserRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    try:
        user = orchestrator.user_service.create_user(
            request.email, request.name, _settings_dict(request.settings)
        )
    except UserValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return user.to_dict()


def _require_user(orchestrator: Orchestrator, user_id: str):
    user = orchestrator.user_service.get_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@api_router.get("/users/{user_id}")
async def get_user(user_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    return _require_user(orchestrator, user_id).to_dict()


@api_router.put("/users/{user_id}")
async def update_user(
    user_id: str,
    request: UpdateUserRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    try:
        user = orchestrator.user_service.update_user_profile(
            user_id, name=request.name, email=request.email
        )
    except UserValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user.to_dict()


@api_router.delete("/users/{user_id}")
async def delete_user(user_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    if not orchestrator.user_service.delete_user(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return {"deleted": True}


@api_router.get("/users/{user_id}/settings")
async def get_user_settings(user_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    return _require_user(orchestrator, user_id).settings.to_dict()


@api_router.put("/users/{user_id}/settings")
async def update_user_settings(
    user_id: str,
    request: UserSettingsModel,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    try:
        user = orchestrator.user_service.update_user_settings(user_id, _settings_dict(request))
    except UserValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user.settings.to_dict()


# ==================== Trips ====================

def _require_trip(orchestrator: Orchestrator, trip_id: str):
    trip = orchestrator.trip_service.get_trip_by_id(trip_id)
    if trip is None:
        raise HTTPException(status_code=404, detail="Trip not found")
    return trip


@api_router.get("/trips")
async def list_trips(
    user_id: str = Query(..., alias="userId"),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    _require_user(orchestrator, user_id)
    return [t.to_dict() for t in orchestrator.trip_service.get_trips_by_user(user_id)]


@api_router.post("/trips")
async def create_trip(request: CreateTripRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    _require_user(orchestrator, request.user_id)

    errors = validate_trip_data(request.model_dump())
    if errors:
        raise HTTPException(status_code=400, detail=errors)

    try:
        trip = orchestrator.trip_service.create_trip(
            request.user_id,
            request.name,
            _to_location(request.origin),
            _to_location(request.destination),
            _to_schedule(request.schedule),
            _to_threshold(request.alert_threshold),
        )
    except TripValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return trip.to_dict()


@api_router.get("/trips/{trip_id}")
async def get_trip(trip_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    return _require_trip(orchestrator, trip_id).to_dict()


@api_router.put("/trips/{trip_id}")
async def update_trip(
    trip_id: str,
    request: UpdateTripRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    _require_trip(orchestrator, trip_id)

    updates: Dict[str, Any] = {}
    if request.name is not None:
        updates["name"] = request.name
    if request.origin is not None:
        updates["origin"] = _to_location(request.origin)
    if request.destination is not None:
        updates["destination"] = _to_location(request.destination)
    if request.is_active is not None:
        updates["is_active"] = request.is_active

    try:
        if request.schedule is not None:
            updates["schedule"] = _to_schedule(request.schedule)
        if request.alert_threshold is not None:
            updates["alert_threshold"] = _to_threshold(request.alert_threshold)
        trip = orchestrator.trip_service.update_trip(trip_id, **updates)
    except TripValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return trip.to_dict()


@api_router.delete("/trips/{trip_id}")
async def delete_trip(trip_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    if not orchestrator.trip_service.delete_trip(trip_id):
        raise HTTPException(status_code=404, detail="Trip not found")
    return {"deleted": True}


@api_router.post("/trips/{trip_id}/toggle")
async def toggle_trip(trip_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    trip = orchestrator.trip_service.toggle_trip_active(trip_id)
    if trip is None:
        raise HTTPException(status_code=404, detail="Trip not found")
    return trip.to_dict()


@api_router.get("/trips/{trip_id}/traffic")
async def trip_traffic(trip_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    trip = _require_trip(orchestrator, trip_id)
    try:
        routes = await orchestrator.scheduler.get_current_traffic_status(trip)
    except Exception as e:
        logger.error(f"[MONITOR] Error fetching traffic for trip {trip_id}: {e}")
        raise HTTPException(status_code=500, detail="Unable to fetch traffic at this time")
    return {"tripId": trip.id, "routes": [r.to_dict() for r in routes]}


@api_router.post("/trips/{trip_id}/monitor")
async def monitor_trip(trip_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    trip = _require_trip(orchestrator, trip_id)
    try:
        job = await orchestrator.scheduler.start_monitoring(trip)
    except Exception as e:
        logger.error(f"[MONITOR] Error starting monitoring for trip {trip_id}: {e}")
        raise HTTPException(status_code=500, detail="Unable to start monitoring at this time")
    return job.to_dict()


@api_router.get("/trips/{trip_id}/alerts")
async def trip_alerts(trip_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    _require_trip(orchestrator, trip_id)
    return [a.to_dict() for a in orchestrator.scheduler.get_alert_history(trip_id)]


# ==================== Monitoring ====================

@api_router.get("/monitoring/jobs")
async def list_jobs(orchestrator: Orchestrator = Depends(get_orchestrator)):
    return [job.to_dict() for job in orchestrator.scheduler.get_active_jobs()]


@api_router.get("/monitoring/jobs/{job_id}")
async def get_job(job_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    job = orchestrator.scheduler.get_monitoring_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Monitoring job not found")
    return job.to_dict()


@api_router.post("/monitoring/jobs/{job_id}/stop")
async def stop_job(job_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    if not await orchestrator.scheduler.stop_monitoring(job_id):
        raise HTTPException(status_code=404, detail="Monitoring job not found")
    return orchestrator.scheduler.get_monitoring_job(job_id).to_dict()


@api_router.post("/monitoring/start-all")
async def start_all_monitoring(orchestrator: Orchestrator = Depends(get_orchestrator)):
    jobs = await orchestrator.start_system_wide_monitoring()
    return {"started": len(jobs), "jobs": [job.to_dict() for job in jobs]}


@api_router.get("/traffic/conditions")
async def traffic_conditions(orchestrator: Orchestrator = Depends(get_orchestrator)):
    return orchestrator.simulator.get_current_conditions()


# ==================== Alerts ====================

@api_router.get("/alerts/recent")
async def recent_alerts(orchestrator: Orchestrator = Depends(get_orchestrator)):
    return [a.to_dict() for a in orchestrator.dispatcher.recent_alerts.snapshot()]


@api_router.post("/alerts/{alert_id}/action")
async def alert_action(
    alert_id: str,
    request: AlertActionRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    alert = orchestrator.alert_service.update_alert_action(alert_id, request.action)
    if alert is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    return alert.to_dict()


# ==================== Demo ====================

@api_router.get("/demo/locations")
async def demo_locations():
    return {
        "locations": KENT_LOCATIONS,
        "roads": {
            "primary": PRIMARY_ROADS,
            "secondary": SECONDARY_ROADS,
            "motorways": MOTORWAYS,
        },
    }


@api_router.post("/demo/setup")
async def demo_setup(orchestrator: Orchestrator = Depends(get_orchestrator)):
    result = orchestrator.initialize_demo()
    return {
        "users": [u.to_dict() for u in result["users"]],
        "trips": [t.to_dict() for t in result["trips"]],
    }


@api_router.post("/demo/traffic-scenario")
async def demo_traffic_scenario(
    request: TrafficScenarioRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    try:
        alerts = await orchestrator.simulate_traffic_scenario(
            request.route_name, request.severity, request.reason
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "scenario": {
            "routeName": request.route_name,
            "severity": request.severity,
            "reason": request.reason,
        },
        "alerts": [a.to_dict() for a in alerts],
    }


def create_app(
    orchestrator: Optional[Orchestrator] = None,
    config: Optional[MonitoringConfig] = None,
) -> FastAPI:
    """Build the API around an orchestrator (default: a fresh one from the environment)."""
    orchestrator = orchestrator or create_orchestrator(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        orchestrator.start()
        logger.info(f"{SERVICE_NAME} started in {orchestrator.config.mode} mode")
        yield
        await orchestrator.shutdown()

    app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION, lifespan=lifespan)
    app.state.orchestrator = orchestrator

    # Add CORS middleware first, before including router
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router)
    return app


app = create_app()
