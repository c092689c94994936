"""FastAPI dependencies resolving the calling account.

Authentication happens upstream; the gateway forwards the authenticated
account in the ``X-Account-Id`` header.
"""

import uuid
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from mediahost.core.database import get_db
from mediahost.modules.account.models import Account
from mediahost.modules.account.repository import AccountRepository


async def get_current_account(
    session: Annotated[AsyncSession, Depends(get_db)],
    x_account_id: Annotated[Optional[str], Header()] = None,
) -> Account:
    """Resolve the account identified by the X-Account-Id header."""
    if not x_account_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Account-Id header",
        )

    try:
        account_id = uuid.UUID(x_account_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-Account-Id header",
        )

    account = await AccountRepository(session).get_by_id(account_id)
    if not account:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found",
        )
    return account


CurrentAccount = Annotated[Account, Depends(get_current_account)]
