from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Lightswitch"])


@router.get("/lightswitch/api/service/bulk/status")
def bulk_service_status() -> list[dict]:
    """Report the game service as up so clients proceed past the launch check."""

    return [
        {
            "serviceInstanceId": "fortnite",
            "status": "UP",
            "message": "Fortnite is online",
            "maintenanceUri": None,
            "overrideCatalogIds": ["a7f138b2e51945ffbfdacc1af0541053"],
            "allowedActions": ["PLAY", "DOWNLOAD"],
            "banned": False,
            "launcherInfoDTO": {
                "appName": "Fortnite",
                "catalogItemId": "4fe75bbc5a674f4f9b356b5c90567da5",
                "namespace": "fn",
            },
        }
    ]
