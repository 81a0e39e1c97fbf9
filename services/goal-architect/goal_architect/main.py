from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import settings
from .errors import PlanArchitectError
from .logging_config import configure_logging
from .routers.plans import router as plans_router

configure_logging(settings.log_level)

app = FastAPI(title="Goal Architect Service", version="0.1.0")


@app.exception_handler(PlanArchitectError)
async def plan_architect_error_handler(request: Request, exc: PlanArchitectError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(plans_router)
