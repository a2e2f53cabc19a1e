import logging
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import Config, load_config
from .models import Rejection, Submission
from .scoring import TOP_LIMIT, Leaderboard
from .store import StoreError, StoreNotConfigured, UpstashClient, UpstashStore

LOGGER = logging.getLogger(__name__)

PATH = "/api/leaderboard"


def build_leaderboard(config: Config) -> Optional[Leaderboard]:
    if not config.configured:
        LOGGER.warning("Store disabled (missing UPSTASH_REDIS_REST_URL or UPSTASH_REDIS_REST_TOKEN).")
        return None
    client = UpstashClient(config.store_url, config.store_token, timeout=config.timeout)
    store = UpstashStore(client, prefix=config.key_prefix)
    return Leaderboard(store, store)


def get_leaderboard(request: Request) -> Leaderboard:
    lb = request.app.state.leaderboard
    if lb is None:
        raise StoreNotConfigured()
    return lb


def create_app(leaderboard: Optional[Leaderboard] = None,
               config: Optional[Config] = None) -> FastAPI:
    config = config or load_config()
    logging.basicConfig(level=config.log_level,
                        format="%(asctime)s %(levelname)s %(message)s")
    LOGGER.info("Loaded configuration: %s", config)
    if leaderboard is None:
        leaderboard = build_leaderboard(config)

    app = FastAPI(title="Puzzle Leaderboard")
    app.state.leaderboard = leaderboard

    @app.exception_handler(StoreError)
    async def store_failed(request: Request, exc: StoreError):
        LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse({"error": str(exc) or "Server error"}, status_code=500)

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        rejection = Rejection(code="invalid_body", message="invalid JSON")
        return JSONResponse(rejection.body(), status_code=400)

    @app.get("/healthz")
    def healthz():
        configured = app.state.leaderboard is not None
        return {"status": "ok", "store": "configured" if configured else "missing"}

    @app.get(PATH)
    def top(lb: Leaderboard = Depends(get_leaderboard)):
        return [e.model_dump() for e in lb.top(TOP_LIMIT)]

    @app.post(PATH)
    def submit(s: Submission, lb: Leaderboard = Depends(get_leaderboard)):
        rejection = lb.submit(s)
        if rejection is None:
            return {"ok": True}
        status = 429 if rejection.code == "rate_limited" else 400
        headers = {"Retry-After": str(rejection.retry_after)} if rejection.retry_after else None
        return JSONResponse(rejection.body(), status_code=status, headers=headers)

    return app


app = create_app()
