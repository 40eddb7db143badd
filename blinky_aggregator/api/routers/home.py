"""
首页

人类可读的主机概览，不供程序解析。
"""

import html

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from ...models import HostRegistry
from ..dependencies import get_registry

router = APIRouter(tags=["home"])


@router.get("/", response_class=HTMLResponse)
async def home(registry: HostRegistry = Depends(get_registry)):
    """返回已注册主机数量及各主机最近上报时间"""
    records = await registry.records()

    lines = [
        "<h1>Blinky Metrics Server: Online</h1>",
        f"<p>Registered Hosts: {len(records)}</p>",
        "<ol>",
    ]
    for record in records:
        last_update = record.last_updated_at.strftime("%Y-%m-%d %H:%M:%S")
        lines.append(
            f"<li><b>{html.escape(record.host_name)}</b> (Last Update: {last_update})</li>"
        )
    lines.append("</ol>")

    return HTMLResponse("\n".join(lines))
