"""Exception hierarchy shared by the core, the resolver and the CLI."""

from typing import Optional


class WalletIdError(Exception):
    """Base exception for walletid."""

    pass


class InvalidInputError(WalletIdError, ValueError):
    """A precondition was violated: empty wallet, non-positive length, etc."""

    pass


class CollisionAmbiguityError(WalletIdError):
    """A derived human ID is already bound to a different wallet and the
    configured policy cannot disambiguate it."""

    def __init__(
        self,
        human_id: str,
        wallet: str,
        existing_wallet: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.human_id = human_id
        self.wallet = wallet
        self.existing_wallet = existing_wallet
        if message is None:
            message = (
                f"Human ID '{human_id}' is already bound to another wallet "
                f"({existing_wallet}); cannot assign it to {wallet}"
            )
        super().__init__(message)


class StoreError(WalletIdError):
    """The backing store could not be read or written."""

    pass
