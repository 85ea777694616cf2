import logging
import os

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dotenv import load_dotenv

from osdeploy.config.settings import get_settings
from osdeploy.core.errors import ErrorKind, OpenStackClientError
from osdeploy.routes import deploy, regions

load_dotenv()

logging.basicConfig(
    level=get_settings().LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="OpenStack Deploy", version="0.1.0")

cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:8080,http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 에러 종류 → HTTP 상태 코드
_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.NOT_AUTHENTICATED: 401,
    ErrorKind.TOKEN_EXPIRED: 401,
    ErrorKind.RESOURCE_NOT_FOUND: 404,
    ErrorKind.SERVICE_NOT_FOUND: 404,
    ErrorKind.ENDPOINT_NOT_FOUND: 404,
    ErrorKind.CATALOG_MISSING: 409,
    ErrorKind.TRANSPORT: 502,
}


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


app.include_router(deploy.router, prefix="/deploy", tags=["deploy"])
app.include_router(regions.router, prefix="/regions", tags=["regions"])


@app.exception_handler(OpenStackClientError)
async def openstack_error(request: Request, exc: OpenStackClientError):
    return JSONResponse(
        status_code=_STATUS_BY_KIND.get(exc.kind, 500),
        content={"detail": exc.message, **exc.to_dict()},
    )


@app.exception_handler(Exception)
async def unhandled_ex(request: Request, exc: Exception):
    # 전역 예외 처리: JSON 형태로 에러를 반환
    return JSONResponse(status_code=500, content={"detail": str(exc)})


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=False)
