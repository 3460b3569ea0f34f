"""Engine configuration.

The same config object is shipped to every worker process, so it has to stay
picklable and free of live resources.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CONCURRENCY = 4


class ExtractorConfig(BaseModel):
    """Options recognized by the extraction engine."""

    model_config = ConfigDict(frozen=True)

    aggressive: bool = Field(
        default=False,
        description="Enable low-confidence patterns for minified/bundled code",
    )
    concurrency: int = Field(
        default=DEFAULT_CONCURRENCY,
        ge=1,
        description="Worker pool size",
    )
    verbose: bool = Field(
        default=False,
        description="Log parse failures, failed tasks and per-input detection counts",
    )
    progress: bool = Field(default=True, description="Show a progress bar on TTY stderr")
    plugins: tuple[str, ...] = Field(
        default=(),
        description="Extra plugin import specs ('package.module:attribute')",
    )

    @field_validator("plugins", mode="before")
    @classmethod
    def _split_plugin_specs(cls, value: object) -> object:
        # Accept "a:b,c:d" from environment variables
        if isinstance(value, str):
            return tuple(spec.strip() for spec in value.split(",") if spec.strip())
        return value
