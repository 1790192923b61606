"""Runtime settings using pydantic-settings."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class ChronicleSettings(BaseSettings):
    """Tunables for the command and projection runtime.

    All settings can be configured via environment variables with the
    CHRONICLE_ prefix. For example:
    - CHRONICLE_COMMAND_MAX_RETRIES=5
    - CHRONICLE_PROJECTION_BATCH_SIZE=500
    - CHRONICLE_LOG_LEVEL=DEBUG

    Attributes:
        command_max_retries: Retries after a command loses a concurrency race.
        command_retry_delay: Seconds to wait between command attempts.
        projection_batch_size: Records read per projection batch.
        projection_max_attempts: Attempts per record before a projection
            gives up with ProjectionApplyFailure.
        projection_retry_backoff: Initial delay between projection attempts.
        projection_max_backoff: Upper bound for the projection retry delay.
        projection_idle_timeout: How long an idle projection waits for a
            commit notification before polling the store.
        query_wait_timeout: Default timeout for read-your-writes queries.
        log_level: Level used by LoggingMiddleware.
    """

    command_max_retries: int = Field(default=3, ge=0)
    command_retry_delay: float = Field(default=0.0, ge=0)

    projection_batch_size: int = Field(default=100, gt=0)
    projection_max_attempts: int = Field(default=5, gt=0)
    projection_retry_backoff: float = Field(default=0.05, ge=0)
    projection_max_backoff: float = Field(default=2.0, ge=0)
    projection_idle_timeout: float = Field(default=1.0, gt=0)

    query_wait_timeout: float = Field(default=5.0, ge=0)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    model_config = {"env_prefix": "CHRONICLE_"}
