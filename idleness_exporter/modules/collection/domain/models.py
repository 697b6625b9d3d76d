"""
Resource handles parsed from the Compute Engine and Dataproc REST APIs.

Only the fields the collectors read are declared; everything else in the
payload is ignored. Handles are request-scoped and never cached.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

RUNNING = "RUNNING"


class GCPModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


class GCPResource(GCPModel):
    name: str = ""
    id: str | None = None
    self_link: str = ""

    def identity(self) -> str:
        """Provider-assigned identity used to de-duplicate merged listings."""
        return self.id or self.self_link or self.name


class Region(GCPResource):
    status: str = ""
    zones: list[str] = Field(default_factory=list)


class Instance(GCPResource):
    zone: str = ""
    status: str = ""

    def identity(self) -> str:
        return self.id or self.self_link or f"{self.zone}/{self.name}"

    @property
    def is_running(self) -> bool:
        return self.status == RUNNING


class Disk(GCPResource):
    zone: str = ""
    status: str = ""
    users: list[str] = Field(default_factory=list)

    def identity(self) -> str:
        return self.id or self.self_link or f"{self.zone}/{self.name}"

    @property
    def is_attached(self) -> bool:
        return bool(self.users)


class Snapshot(GCPResource):
    status: str = ""
    source_disk: str = ""
    source_disk_id: str = ""
    creation_timestamp: str = ""


class ClusterStatus(GCPModel):
    state: str = ""


class GceClusterConfig(GCPModel):
    zone_uri: str = ""


class ClusterConfig(GCPModel):
    gce_cluster_config: GceClusterConfig = Field(default_factory=GceClusterConfig)


class DataprocCluster(GCPModel):
    cluster_name: str = ""
    cluster_uuid: str = ""
    status: ClusterStatus = Field(default_factory=ClusterStatus)
    config: ClusterConfig = Field(default_factory=ClusterConfig)

    @property
    def is_running(self) -> bool:
        return self.status.state == RUNNING
