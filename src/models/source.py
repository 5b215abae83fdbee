from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, TYPE_CHECKING

from models.bounds_pyramid import BoundsPyramid

if TYPE_CHECKING:
    from interfaces.tile_archive import ITileArchive


MEMBER_DEFAULT_MIN_ZOOM = 0
MEMBER_DEFAULT_MAX_ZOOM = 30


class TileCoordinate(NamedTuple):
    """Tile address in the XYZ (north-up) convention used by clients"""
    z: int
    x: int
    y: int


@dataclass
class TileData:
    """Raw tile payload and response headers"""
    data: bytes
    headers: Dict[str, str] = field(default_factory=dict)


class SourceState(Enum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"


@dataclass
class ConcreteSource:
    """A single tile archive registered from configuration"""
    id: str
    tile_metadata: Dict[str, Any]
    archive: "ITileArchive"
    bounds_pyramid: BoundsPyramid
    public_url: Optional[str] = None
    
    @property
    def is_virtual(self) -> bool:
        return False


@dataclass(frozen=True)
class MergedMember:
    """One concrete source reference inside a virtual source"""
    ref_id: str
    minzoom: int = MEMBER_DEFAULT_MIN_ZOOM
    maxzoom: int = MEMBER_DEFAULT_MAX_ZOOM
    source: Optional[ConcreteSource] = None
    
    def covers_zoom(self, zoom: int) -> bool:
        return self.minzoom <= zoom <= self.maxzoom
    
    def bind(self, source: ConcreteSource) -> "MergedMember":
        """Return a copy carrying the resolved concrete source"""
        return replace(self, source=source)


@dataclass
class VirtualSource:
    """A composite source merging concrete sources in declaration order.

    Created as an UNRESOLVED stub holding only its members; becomes RESOLVED
    once, after every concrete source finished initializing.
    """
    id: str
    members: List[MergedMember]
    tile_metadata: Optional[Dict[str, Any]] = None
    public_url: Optional[str] = None
    center: Optional[List[float]] = None
    state: SourceState = SourceState.UNRESOLVED
    
    @property
    def is_virtual(self) -> bool:
        return True
    
    @property
    def is_resolved(self) -> bool:
        return self.state is SourceState.RESOLVED
    
    def resolve(self, members: List[MergedMember], tile_metadata: Dict[str, Any]) -> None:
        if self.is_resolved:
            raise RuntimeError(f"Virtual source '{self.id}' is already resolved")
        self.members = list(members)
        self.tile_metadata = tile_metadata
        self.state = SourceState.RESOLVED
