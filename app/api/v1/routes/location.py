from fastapi import APIRouter, Depends, Request
from app.api.deps import get_geoip_cache
from app.services.geoip_service import GeoIPCache, detect_location

router = APIRouter(tags=["location"])


@router.get("/location/detect")
def detect(request: Request, cache: GeoIPCache = Depends(get_geoip_cache)):
    peer = request.client.host if request.client else None
    return detect_location(request.headers, cache, peer=peer)
