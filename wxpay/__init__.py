"""Client for the WeChat Pay merchant API: orders, refunds, transfers and notifications."""

__version__ = "0.1.0"