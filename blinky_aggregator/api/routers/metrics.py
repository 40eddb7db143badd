"""
指标 API

- POST /metrics：Agent 上报单台主机的 CPU 使用率
- GET  /metrics：客户端订阅快照流（NDJSON，每行一个快照）
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, StreamingResponse
from pydantic import ValidationError

from ...config import AppConfig
from ...models import HostRegistry, HostSample
from ...subscribers import SubscriberHub
from ..dependencies import get_app_config, get_hub, get_registry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["metrics"])


def describe_validation_error(error: ValidationError) -> str:
    """把 Pydantic 校验错误压缩成一句简短的原因"""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid input")
    return f"{location}: {message}" if location else message


@router.post("/metrics", response_class=PlainTextResponse)
async def post_metrics(
    request: Request,
    registry: HostRegistry = Depends(get_registry)
):
    """
    上报主机指标

    请求体：{"hostName": "<str>", "cpuUsage": <0~1>}
    格式错误时返回 400，且不修改任何已有记录。
    """
    body = await request.body()
    try:
        sample = HostSample.model_validate_json(body)
    except ValidationError as e:
        reason = describe_validation_error(e)
        logger.warning(f"Received bad request: {reason}")
        return PlainTextResponse(f"Bad request: {reason}", status_code=400)

    await registry.upsert(sample)
    return PlainTextResponse("OK")


@router.get("/metrics")
async def stream_metrics(
    request: Request,
    registry: HostRegistry = Depends(get_registry),
    hub: SubscriberHub = Depends(get_hub),
    config: AppConfig = Depends(get_app_config)
):
    """
    订阅快照流

    连接建立后立即收到一份当前快照，此后每个推送周期收到一份。
    """
    client = request.client
    remote_address = f"{client.host}:{client.port}" if client else "unknown"

    subscriber = await hub.subscribe(remote_address)
    snapshot = await registry.snapshot(config.pruner.window)
    subscriber.offer(snapshot.to_line())

    return StreamingResponse(
        subscriber.stream(),
        media_type="application/x-ndjson",
        headers={"Cache-Control": "no-cache"}
    )
