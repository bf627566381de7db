from fastapi import APIRouter

from ..services import get_scheduler
from ..services.external import ping

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    return {
        "status": "ok",
        "coingecko": ping(),
        "scheduler": get_scheduler().state.value,
    }
