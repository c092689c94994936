"""Repository for account lookups."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mediahost.modules.account.models import Account


class AccountRepository:
    """Read access to accounts."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, account_id: uuid.UUID) -> Optional[Account]:
        """Get account by ID."""
        query = select(Account).where(Account.id == account_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()
