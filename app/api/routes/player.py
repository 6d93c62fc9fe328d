from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.auth import require_bearer_token
from app.core.errors import ValidationAppError
from app.schemas.player import PlayerStats, PlayerStatsResponse
from app.utils.clock import utc_now_iso

router = APIRouter(tags=["Player"])

MIN_PLAYER_ID_LENGTH = 3


@router.get(
    "/fortnite/api/player/{player_id}/stats",
    response_model=PlayerStatsResponse,
    dependencies=[Depends(require_bearer_token)],
)
async def player_stats(player_id: str) -> PlayerStatsResponse:
    """Placeholder statistics for a player.

    Args:
        player_id: Account identifier from the path, echoed unchanged.

    Raises:
        ValidationAppError: 400 when the id is shorter than three characters.
    """
    if not player_id or len(player_id) < MIN_PLAYER_ID_LENGTH:
        raise ValidationAppError(message="Invalid player ID", code="invalid_player_id")

    return PlayerStatsResponse(
        playerId=player_id,
        stats=PlayerStats(),
        lastUpdated=utc_now_iso(),
    )
