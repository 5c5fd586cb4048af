"""Pydantic configuration models for the exporter."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional


class NodeTarget(BaseModel):
    """Resolved, immutable polling target for one broker node."""
    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    username: str = ""
    password: str = Field(default="", repr=False)
    interval: str = "30s"


class NodeConfig(BaseModel):
    """Configuration entry for one monitored broker node."""
    name: str
    url: str
    uname: str = ""
    password: str = Field(default="", repr=False)
    req_interval: Optional[str] = None  # Falls back to the global interval

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')


class ExporterConfig(BaseModel):
    """Root configuration model for the exporter."""
    port: int = Field(default=9419, ge=0, le=65535)
    req_interval: str = "30s"
    nodes: List[NodeConfig] = Field(default_factory=list)

    def node_targets(self) -> List[NodeTarget]:
        """
        Resolve node entries into polling targets.

        Returns:
            List[NodeTarget]: One target per configured node, with the
            global interval applied where a node has no override
        """
        return [
            NodeTarget(
                name=node.name,
                url=node.url,
                username=node.uname,
                password=node.password,
                interval=node.req_interval or self.req_interval,
            )
            for node in self.nodes
        ]
