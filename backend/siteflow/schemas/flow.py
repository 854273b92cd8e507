from enum import Enum

from pydantic import BaseModel

from siteflow.schemas.common import ArtifactModel


class Category(str, Enum):
    LOGIN = "Login"
    CHECKOUT = "Checkout"
    ACCOUNT = "Account"
    SEARCH = "Search"


class FlowNode(BaseModel):
    id: str
    url: str
    label: str

    model_config = {"frozen": True}


class FlowEdge(BaseModel):
    source: str
    target: str

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.source} --> {self.target}"


class FlowMetadata(ArtifactModel):
    """Contents of flow_meta.json."""

    target_url: str
    generated_at: str
    node_count: int
    edge_count: int

    model_config = {"frozen": True}


class FlowArtifacts(BaseModel):
    summary: str
    diagram_source: str
    metadata: FlowMetadata
    nodes: tuple[FlowNode, ...] = ()
    edges: tuple[FlowEdge, ...] = ()

    model_config = {"frozen": True}
