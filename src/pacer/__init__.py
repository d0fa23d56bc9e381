"""pacer - Throttle and retry outbound requests to rate-limited sites."""

from pacer.backoff import delay_for, should_retry_for_status, status_of
from pacer.config import SchedulerConfig, parse_rate
from pacer.errors import ConfigurationError, PacerError, SchedulerStoppedError
from pacer.models import Failure, Job, JobState, SchedulerStats, Success
from pacer.scheduler import Scheduler
from pacer.sites import SiteRegistry, create_for_site

__version__ = "0.1.0"
__all__ = [
    "Scheduler",
    "SchedulerConfig",
    "SchedulerStats",
    "SiteRegistry",
    "create_for_site",
    "parse_rate",
    "delay_for",
    "should_retry_for_status",
    "status_of",
    "Job",
    "JobState",
    "Success",
    "Failure",
    "PacerError",
    "ConfigurationError",
    "SchedulerStoppedError",
]
