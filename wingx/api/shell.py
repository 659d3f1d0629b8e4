from typing import Optional

from fastapi import APIRouter, Depends

from wingx.api.deps import get_optional_session, get_session
from wingx.application.notifications import VERIFICATION_PATH
from wingx.application.session import DashboardSession
from wingx.application.shell import build_shell, guard_route

router = APIRouter(prefix="/api/shell", tags=["shell"])


@router.get("")
async def shell(path: str = "/", session: Optional[DashboardSession] = Depends(get_optional_session)):
    user = session.user if session else None
    redirect = guard_route(path, user)
    if redirect is not None:
        return {"redirect": redirect}
    if user is None:
        # Public page, rendered without the dashboard chrome
        return {"redirect": None, "public": True}
    return dict(build_shell(user, session.engine, path), redirect=None, public=False)


@router.post("/toast/dismiss")
async def dismiss_toast(session: DashboardSession = Depends(get_session)):
    session.engine.clear_new_orders()
    return {"toast": None}


@router.post("/toast/open")
async def open_toast(session: DashboardSession = Depends(get_session)):
    session.engine.clear_new_orders()
    return {"toast": None, "redirect": VERIFICATION_PATH}
