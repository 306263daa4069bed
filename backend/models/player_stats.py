"""Per-player match statistics."""

from sqlalchemy import Column, Integer, String
from database import Base


class PlayerStats(Base):
    """
    Aggregated kill/death/headshot counters for one Steam account.

    Rows are written by the game server; this service only reads them.
    """

    __tablename__ = "player_stats"

    steam_id = Column(String(32), primary_key=True)
    kills = Column(Integer, nullable=False, default=0)
    deaths = Column(Integer, nullable=False, default=0)
    headshots = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<PlayerStats {self.steam_id} k={self.kills} d={self.deaths} hs={self.headshots}>"
