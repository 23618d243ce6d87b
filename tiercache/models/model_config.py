"""Store construction settings."""

from pydantic import BaseModel, Field, field_validator, model_validator

from tiercache.consts import PATH_SHARD_DEPTH, PATH_SHARD_WIDTH


class StoreConfig(BaseModel):
    """Settings for a single file-backed store."""

    path: str = Field(description="Root directory for cache entries")
    prefix: str = Field(default="", description="Prepended to every key before hashing")
    fixed_width_header: bool = Field(
        default=False, description="Write the 10-digit fixed-width expiry header"
    )
    shard_width: int = Field(
        default=PATH_SHARD_WIDTH, ge=1, description="Hex characters per directory level"
    )
    shard_depth: int = Field(
        default=PATH_SHARD_DEPTH, ge=0, description="Directory levels below the root"
    )

    @field_validator("path")
    @classmethod
    def path_not_blank(cls, v: str) -> str:
        """Reject empty or whitespace-only paths."""
        if not v.strip():
            msg = "Storage path must be a non-empty string"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def sharding_fits_digest(self) -> "StoreConfig":
        """Validate that the shard directories fit in a 40-character digest."""
        if self.shard_width * self.shard_depth > 40:
            msg = f"Sharding needs {self.shard_width * self.shard_depth} hex characters, digest has 40"
            raise ValueError(msg)
        return self


class ChainConfig(BaseModel):
    """Settings for a chain of file-backed stores, fastest first."""

    stores: list[StoreConfig] = Field(default_factory=list)
    backfill: bool = Field(
        default=False, description="Copy hits from later stores into earlier ones"
    )
