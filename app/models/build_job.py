"""
Build Job Model
Pydantic model for a build submitted to the background scheduler.
Clients poll it by job_id until state is FINISHED or ERROR.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from app.models.build_record import BuildRecord


class JobState(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"   # pipeline returned a record (the build itself may have failed)
    ERROR = "ERROR"         # no record: configuration, infrastructure or pipeline fault


class BuildJob(BaseModel):
    job_id: str
    project: str
    state: JobState = JobState.QUEUED
    submitted_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    record: Optional[BuildRecord] = None
    error: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.state in (JobState.FINISHED, JobState.ERROR)
