from abc import ABC, abstractmethod

from shortener.schemas import GeoInfo


class GeoResolver(ABC):
    """Maps a client IP to coarse location info for click analytics."""

    @abstractmethod
    def resolve(self, ip: str | None) -> GeoInfo:
        raise NotImplementedError


class UnknownGeoResolver(GeoResolver):
    """Placeholder resolver: keeps the IP, reports the location as unknown."""

    def resolve(self, ip: str | None) -> GeoInfo:
        return GeoInfo(ip=ip)
