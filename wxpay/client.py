"""Entry point to the payment APIs of one merchant account."""

from __future__ import annotations

from dataclasses import dataclass

from .config import Config
from .notify import Notify
from .order import Order
from .refund import Refund
from .transfer import Transfer


@dataclass
class Pay:
    """Gives access to the order, notification, refund and transfer APIs."""

    config: Config

    def order(self) -> Order:
        """Order placing, closing and querying."""
        return Order(self.config)

    def notify(self) -> Notify:
        """Notification handling."""
        return Notify(self.config)

    def refund(self) -> Refund:
        """Refunds."""
        return Refund(self.config)

    def transfer(self) -> Transfer:
        """Transfers to user wallets."""
        return Transfer(self.config)