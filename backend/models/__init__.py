from .player_stats import PlayerStats

__all__ = [
    "PlayerStats",
]
