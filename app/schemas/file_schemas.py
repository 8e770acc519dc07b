from app.models.enums import ResourceType
from app.schemas.common import CamelModel, UTCDateTime


class FileResponse(CamelModel):
    id: int
    name: str
    url: str
    size: int
    mime: str
    resource_type: ResourceType
    created_at: UTCDateTime
