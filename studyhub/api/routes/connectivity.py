"""
Connectivity Routes

Endpoints:
- GET /connectivity - Current emergency mode status
- POST /connectivity/check - Probe the data service
- POST /connectivity/offline - Admin switches emergency mode on
- POST /connectivity/reconnect - Explicit reconnection attempt

Emergency mode is sticky: once on, only a successful reconnect turns it off.
The mode is shared by every student, so only admins may force it on.
"""

import logging

from fastapi import APIRouter

from studyhub.api.deps import AdminSession, Data, Session
from studyhub.schemas.connectivity import ConnectivityStatus, ReconnectResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/connectivity", tags=["connectivity"])


@router.get("/", response_model=ConnectivityStatus)
async def get_status(data: Data) -> ConnectivityStatus:
    return data.monitor.status()


@router.post("/check", response_model=ConnectivityStatus)
async def check_connection(data: Data) -> ConnectivityStatus:
    """Run one connectivity probe; failures count towards emergency mode."""
    await data.check_connection()
    return data.monitor.status()


@router.post("/offline", response_model=ConnectivityStatus)
async def report_offline(session: AdminSession) -> ConnectivityStatus:
    logger.warning("Admin %s switched on emergency mode", session.user_id)
    session.data.monitor.report_offline(f"reported offline by admin {session.user_id}")
    return session.data.monitor.status()


@router.post("/reconnect", response_model=ReconnectResult)
async def reconnect(session: Session) -> ReconnectResult:
    """Leaves emergency mode only if the data service answers a probe."""
    reconnected = await session.data.reconnect()
    return ReconnectResult(reconnected=reconnected, status=session.data.monitor.status())
