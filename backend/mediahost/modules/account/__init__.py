"""Account module."""

from mediahost.modules.account.models import Account, derive_login

__all__ = ["Account", "derive_login"]
