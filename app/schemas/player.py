"""Pydantic schemas for player endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class PlayerStats(BaseModel):
    """Aggregate counters for a player (all zero until stats are tracked)."""

    wins: int = Field(0, ge=0, description="Matches won.")
    kills: int = Field(0, ge=0, description="Eliminations across all matches.")
    matches: int = Field(0, ge=0, description="Matches played.")


class PlayerStatsResponse(BaseModel):
    """Response body of the player stats route."""

    playerId: str = Field(..., description="Player identifier as given in the path.")
    stats: PlayerStats = Field(default_factory=PlayerStats)
    lastUpdated: str = Field(..., description="ISO-8601 UTC time the payload was built.")
