"""
Entidad Admin.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from portal.shared.constants.portal_constants import ELEVATED_USER_STATUSES, UserStatus


@dataclass
class Admin:
    """Usuario identificado por email con acceso elevado segun su estado."""

    id: Optional[str]
    email: Optional[str]
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    user_status: UserStatus = UserStatus.INACTIVE

    @property
    def mirror_id(self) -> Optional[str]:
        """Identidad en el espejo: record id de Airtable, o el email si falta."""
        return self.id or self.email

    @property
    def is_elevated(self) -> bool:
        return self.user_status in ELEVATED_USER_STATUSES
