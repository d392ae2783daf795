import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AuthUser(BaseModel):
    """
    Identity handed to us by the identity provider. Trusted as-is.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = "customer"
    # Set for users who operate a vendor store.
    vendor_id: Optional[uuid.UUID] = None

    @property
    def is_admin(self) -> bool:
        return self.role in ("admin", "service_role")
