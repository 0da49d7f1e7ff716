"""
Configuration models and the logging setup host applications may install
"""

from typing import Any, Mapping

from pydantic import BaseModel, Field
from typing_extensions import Self

MAX_CONCURRENT_FLOWS = "pipecascade.cascade.maxconcurrentflows"
STOP_JOBS_ON_EXIT = "pipecascade.flow.stopjobsonexit"
SUBMIT_PRIORITY = "pipecascade.flow.submitpriority"
MAX_CONCURRENT_STEPS = "pipecascade.flow.maxconcurrentsteps"


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


class CascadeProps(BaseModel):
    max_concurrent_flows: int = Field(
        0,
        ge=0,
        description="upper bound on flows executing at once, 0 means one slot per flow",
    )
    stop_jobs_on_exit: bool = Field(
        True,
        description="register `stop` with the cancellation context for the duration of a run",
    )

    @classmethod
    def from_properties(cls, properties: Mapping[str, Any] | None) -> Self:
        """Reads the flat, string keyed property map used by connectors"""
        properties = properties or {}
        values: dict[str, Any] = {}
        if MAX_CONCURRENT_FLOWS in properties:
            values["max_concurrent_flows"] = int(properties[MAX_CONCURRENT_FLOWS])
        if STOP_JOBS_ON_EXIT in properties:
            values["stop_jobs_on_exit"] = _parse_bool(properties[STOP_JOBS_ON_EXIT])
        return cls(**values)


class FlowProps(BaseModel):
    submit_priority: int = Field(
        5,
        ge=1,
        le=10,
        description="tie-break when ordering independent flows, lower is submitted first",
    )
    stop_jobs_on_exit: bool = Field(
        True,
        description="whether an enclosing cascade should stop this flow on host exit",
    )
    max_concurrent_steps: int = Field(
        0,
        ge=0,
        description="upper bound on steps executing at once, 0 means one slot per step",
    )

    @classmethod
    def from_properties(cls, properties: Mapping[str, Any] | None) -> Self:
        properties = properties or {}
        values: dict[str, Any] = {}
        if SUBMIT_PRIORITY in properties:
            values["submit_priority"] = int(properties[SUBMIT_PRIORITY])
        if STOP_JOBS_ON_EXIT in properties:
            values["stop_jobs_on_exit"] = _parse_bool(properties[STOP_JOBS_ON_EXIT])
        if MAX_CONCURRENT_STEPS in properties:
            values["max_concurrent_steps"] = int(properties[MAX_CONCURRENT_STEPS])
        return cls(**values)


# NOTE consumed via `logging.config.dictConfig(logging_config)` by the host, never on import
logging_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "pipecascade": {"level": "INFO", "handlers": ["console"], "propagate": False},
    },
}


def log_prefix(name: str | None) -> str:
    """Prefix of cascade and flow log lines, long names keep their head"""
    return f"[{(name or '')[:25]}]"
