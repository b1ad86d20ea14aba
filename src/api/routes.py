"""POST /markdown and POST /markdown/jobs endpoint handlers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from src.api.schemas import JobAccepted, MarkdownJob
from src.api.service import enqueue_markdown_job, write_markdown_now
from src.auth.dependencies import require_api_token
from src.config import Settings
from src.jobs.queue import RedisJobQueue
from src.writer.orchestrator import MarkdownWriter

router = APIRouter(dependencies=[Depends(require_api_token)])


def _get_writer(request: Request) -> MarkdownWriter:
    return request.app.state.writer


def _get_queue(request: Request) -> RedisJobQueue:
    return request.app.state.queue


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


@router.post("/markdown")
async def create_markdown(
    body: MarkdownJob,
    writer: MarkdownWriter = Depends(_get_writer),
    settings: Settings = Depends(_get_settings),
):
    status_code, response = await write_markdown_now(writer, settings, body)
    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(exclude_none=True),
    )


@router.post("/markdown/jobs", status_code=status.HTTP_202_ACCEPTED, response_model=JobAccepted)
async def queue_markdown(
    body: MarkdownJob,
    queue: RedisJobQueue = Depends(_get_queue),
):
    return await enqueue_markdown_job(queue, body)
