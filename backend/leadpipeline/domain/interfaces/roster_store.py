"""
Roster Store Interface
Persistence boundary for the commercial team roster
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from leadpipeline.domain.models.team import CommercialTeamMember


class RosterStore(ABC):
    """Abstract storage for commercial team members"""

    @abstractmethod
    async def load_roster(self) -> List[CommercialTeamMember]:
        """All team members, active or not"""
        pass

    @abstractmethod
    async def get_member(self, agent_id: str) -> Optional[CommercialTeamMember]:
        pass

    @abstractmethod
    async def save_roster_member(self, member: CommercialTeamMember) -> None:
        """Insert or replace a team member"""
        pass
