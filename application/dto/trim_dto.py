# application/dto/trim_dto.py
# Data Transfer Objects for trim job requests and results.

from dataclasses import asdict, dataclass
from typing import Optional


@dataclass
class TrimRequestDTO:
    """Single trim request as parsed from the HTTP form."""
    start_ms: float = 0.0
    end_ms: float = 0.0
    auto_trim: bool = False
    output_path: str = ""


@dataclass
class TrimJobDTO:
    """Client-visible state of a trim job."""
    job_id: str
    status: str = "queued"       # queued | processing | done | error | cancelled
    progress: int = 0
    step: str = "Waiting to start"
    error: Optional[str] = None
    start_ms: int = 0
    end_ms: int = 0

    def to_dict(self) -> dict:
        data: dict = asdict(self)
        data["jobId"] = data.pop("job_id")
        data["startMs"] = data.pop("start_ms")
        data["endMs"] = data.pop("end_ms")
        return data
