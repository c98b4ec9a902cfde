from uuid import UUID

from pydantic import BaseModel

from schoolfees.core.enums import AppRole


class CurrentUser(BaseModel):
    """Actor supplied by the identity provider. Passed explicitly into every ledger and audit call."""

    id: UUID
    role: AppRole
