"""
brandsafety/api/routes.py
==========================
HTTP API — Brand Safety scan endpoints

Responsibility:
    - POST /api/v1/scan-one      scan a single creator (cached when fresh)
    - POST /api/v1/scan-many     scan creators sequentially; a failure for
                                 one creator becomes an error entry
    - GET  /api/v1/results       every persisted RiskOutcome
    - GET  /api/v1/result/{id}   one persisted RiskOutcome (404 if absent)
    - Optionally POST each finished result to WEBHOOK_URL

Error mapping:
    ConfigurationError     → 400
    SearchUnavailableError → 429 (quota) / 502 (other provider failure)
    StageVerificationError → 500
"""

import logging
import os
from typing import Any

import aiohttp
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from brandsafety.config import ConfigurationError
from brandsafety.models import Creator, RiskOutcome
from brandsafety.pipeline import run_pipeline_with_deadline
from brandsafety.search.client import SearchUnavailableError
from brandsafety.stage_validator import StageVerificationError
from brandsafety.store import ResultCache, default_store

logger = logging.getLogger("brandsafety.api")

WEBHOOK_URL: str | None = os.getenv("WEBHOOK_URL")


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class CreatorIn(BaseModel):
    name: str = Field(min_length=1)
    handle: str | None = None
    channel_id: str | None = None
    channel_url: str | None = None
    id: str | None = None
    platform: str = "Other"

    def to_creator(self) -> Creator:
        return Creator(
            name=self.name,
            handle=self.handle,
            channel_id=self.channel_id,
            channel_url=self.channel_url,
            id=self.id,
            platform=self.platform,
        )


class ScanOneRequest(BaseModel):
    creator: CreatorIn
    aliases: list[str] = Field(default_factory=list)
    force: bool = False


class ScanManyRequest(BaseModel):
    creators: list[CreatorIn] = Field(min_length=1)
    force: bool = False


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Brand Safety",
    description="Creator reputational-risk scanning over public web evidence.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.store = default_store()


def _results(request: Request) -> ResultCache:
    return ResultCache(request.app.state.store)


async def _scan(request: Request, creator: Creator, aliases: list[str], force: bool) -> RiskOutcome:
    try:
        return await run_pipeline_with_deadline(
            creator,
            aliases=aliases or None,
            force=force,
            store=request.app.state.store,
        )
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SearchUnavailableError as exc:
        status = 429 if exc.likely_cause == "quota" else 502
        raise HTTPException(status_code=status, detail=exc.message)
    except StageVerificationError as exc:
        logger.error("Stage verification failed: %s", exc)
        raise HTTPException(
            status_code=500,
            detail=f"Pipeline verification error in stage {exc.stage}: {exc.message}",
        )


async def _post_webhook(payload: dict[str, Any]) -> None:
    if not WEBHOOK_URL:
        logger.debug("WEBHOOK_URL not configured — skipping POST.")
        return
    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                WEBHOOK_URL,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=30),
            ) as resp:
                logger.info("Webhook POST to %s — status %d", WEBHOOK_URL, resp.status)
    except (aiohttp.ClientError, TimeoutError) as exc:
        logger.error("Webhook POST failed: %s", exc)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.post("/api/v1/scan-one")
async def scan_one(body: ScanOneRequest, request: Request):
    creator = body.creator.to_creator()
    logger.info("Scan requested: %s", creator.key)

    outcome = await _scan(request, creator, body.aliases, body.force)
    payload = outcome.to_dict()
    await _post_webhook(payload)
    return JSONResponse(status_code=200, content={"result": payload})


@app.post("/api/v1/scan-many")
async def scan_many(body: ScanManyRequest, request: Request):
    results: list[dict[str, Any]] = []
    for item in body.creators:
        creator = item.to_creator()
        try:
            outcome = await _scan(request, creator, [], body.force)
        except HTTPException as exc:
            logger.error("scan-many failed for %s: %s", creator.key, exc.detail)
            results.append({"creator_id": creator.key, "error": exc.detail})
            continue
        payload = outcome.to_dict()
        await _post_webhook(payload)
        results.append(payload)
    return JSONResponse(status_code=200, content={"results": results})


@app.get("/api/v1/results")
async def list_results(request: Request):
    return {"results": [o.to_dict() for o in _results(request).all()]}


@app.get("/api/v1/result/{creator_id}")
async def get_result(creator_id: str, request: Request):
    outcome = _results(request).get(creator_id)
    if outcome is None:
        raise HTTPException(status_code=404, detail="Not found")
    return {"result": outcome.to_dict()}
