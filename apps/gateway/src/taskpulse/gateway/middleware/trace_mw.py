"""TraceMiddleware -- 为用户级操作绑定 user_id / task_id

从 /api/users/{user_id}/... 与 /api/stream/alerts/{user_id} 路径中提取，
贯穿本次请求内的全部日志（含触发的服务层日志）。
"""

import re

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

_USER_PATH = re.compile(r"^/api/(?:users|stream/alerts)/(?P<user_id>[^/]+)")
_TASK_PATH = re.compile(r"/tasks/(?P<task_id>[^/]+)/(?:timer|status)$")


class TraceMiddleware(BaseHTTPMiddleware):
    """用户级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path

        user_match = _USER_PATH.match(path)
        if user_match:
            structlog.contextvars.bind_contextvars(user_id=user_match["user_id"])
            task_match = _TASK_PATH.search(path)
            if task_match:
                structlog.contextvars.bind_contextvars(task_id=task_match["task_id"])

        return await call_next(request)
