from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


# (source_id, kind, metadata) -> metadata
DataDecorator = Callable[[str, str, Dict[str, Any]], Dict[str, Any]]


@dataclass
class RegistryOptions:
    """Global options of the source registry"""
    mbtiles_root: str = "."
    domains: Optional[List[str]] = None
    query_timeout: Optional[float] = None
    fail_fast: bool = False
    public_url: Optional[str] = None
    data_decorator: Optional[DataDecorator] = None


@dataclass
class ConcreteSourceConfig:
    """Data model for a concrete (archive backed) source"""
    id: str
    mbtiles: str
    domains: Optional[List[str]] = None
    tilejson: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MemberConfig:
    """Member reference of a virtual source, with an optional zoom window"""
    id: str
    minzoom: Optional[int] = None
    maxzoom: Optional[int] = None


@dataclass
class VirtualSourceConfig:
    """Data model for a virtual source"""
    id: str
    members: List[MemberConfig]
    center: Optional[List[float]] = None


@dataclass
class RegistryConfig:
    """Complete registry configuration"""
    options: RegistryOptions = field(default_factory=RegistryOptions)
    data: Dict[str, ConcreteSourceConfig] = field(default_factory=dict)
    virtual: Dict[str, VirtualSourceConfig] = field(default_factory=dict)
