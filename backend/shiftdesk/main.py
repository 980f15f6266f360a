import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shiftdesk.core.errors import ScheduleError
from shiftdesk.routers.schedules import router as schedules_router

log = logging.getLogger("shiftdesk.api")

app = FastAPI(title="Shiftdesk API")

app.include_router(schedules_router)


@app.exception_handler(ScheduleError)
def schedule_error_handler(request: Request, exc: ScheduleError):
    if exc.status_code >= 500:
        log.warning("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.get("/health")
def health():
    return {"status": "ok"}
