"""Merchant settings for the payment APIs."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Config:
    """Merchant account settings: app id, merchant id, API key and default notify URL."""

    app_id: str = ""
    mch_id: str = ""
    key: str = field(default="", repr=False)
    notify_url: str = ""