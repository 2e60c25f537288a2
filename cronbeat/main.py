import logging
from typing import List

from fastapi import Depends, FastAPI, HTTPException

from cronbeat.config import Settings, get_settings
from cronbeat.errors import CrontabUnavailableError, InvalidUserError
from cronbeat.models import CronTaskPreview
from cronbeat.services.runner import preview_crontab
from cronbeat.services.scheduler_gateway import CrontabCommandGateway, SchedulerGateway

# Simple logging setup (sichtbar in uvicorn-Konsole)
logging.basicConfig(level=logging.INFO)

app = FastAPI(
    title="cronbeat API",
    version="0.1.0",
)


def get_gateway() -> SchedulerGateway:
    return CrontabCommandGateway()


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/crons/{user}", response_model=List[CronTaskPreview])
def list_user_crons(
    user: str,
    gateway: SchedulerGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    try:
        return preview_crontab(user, gateway=gateway, vendor_domain=settings.vendor_domain)
    except InvalidUserError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except CrontabUnavailableError as e:
        raise HTTPException(status_code=404, detail=str(e))
