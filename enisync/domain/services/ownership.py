"""
Ownership Policy

Architectural Intent:
- Decides which cloud resources enisync may destroy on its own initiative
- A resource is ours if its "created by" tag equals our owner tag
- A resource created within the protection window is never touched, so a
  concurrent caller halfway through create -> tag -> attach is not raced
"""

from dataclasses import dataclass
from datetime import datetime, UTC, timedelta
from typing import Optional

from enisync.domain.value_objects.cloud_resources import (
    NetworkInterfaceResource,
    TAG_CREATED_BY,
    TAG_CREATED_FROM,
    TAG_CREATED_ON,
)


@dataclass(frozen=True)
class OwnershipPolicy:
    owner_tag: str = "enisync"
    protect_seconds: int = 60

    def tags_for(self, instance_id: str, created_on: datetime) -> dict[str, str]:
        return {
            TAG_CREATED_BY: self.owner_tag,
            TAG_CREATED_ON: created_on.isoformat(),
            TAG_CREATED_FROM: instance_id,
        }

    def owns(self, interface: NetworkInterfaceResource) -> bool:
        return interface.created_by(self.owner_tag)

    def recently_created(
        self,
        interface: NetworkInterfaceResource,
        now: Optional[datetime] = None,
    ) -> bool:
        created_on = interface.created_on
        if created_on is None:
            return False
        now = now or datetime.now(UTC)
        return now - created_on < timedelta(seconds=self.protect_seconds)

    def may_clean(
        self,
        interface: NetworkInterfaceResource,
        safe_mode: bool = True,
        now: Optional[datetime] = None,
    ) -> bool:
        """Bulk cleanup may delete this interface."""
        if not safe_mode:
            return True
        return self.owns(interface) and not self.recently_created(interface, now)
