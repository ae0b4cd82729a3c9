from feedline.database.tables.base_class import Base
from feedline.database.tables.job_table import Jobs
from feedline.database.tables.keys_table import Keys
from feedline.database.tables.subject_tables import (
    Assets,
    GlobalPoints,
    Matches,
    Participants,
    PlayerPoints,
    Players,
    Teams,
)

__all__ = [
    "Base",
    "Jobs",
    "Keys",
    "Assets",
    "GlobalPoints",
    "Matches",
    "Participants",
    "PlayerPoints",
    "Players",
    "Teams",
]
