from __future__ import annotations

from pydantic import BaseModel


class JobEnqueueResponse(BaseModel):
    task_id: str
    queued: bool = True  # false when an existing job was returned


class JobStatusResponse(BaseModel):
    task_id: str
    status: str
    result: object | None = None
