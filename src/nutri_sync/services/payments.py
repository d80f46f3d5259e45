"""Checkout links and transaction verification."""

import logging
from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import quote, urlencode

from nutri_sync.errors import PaymentError

logger = logging.getLogger(__name__)

_MIN_TRANSACTION_ID_LENGTH = 6


class PaymentChannel(StrEnum):
    """Supported checkout channels."""

    PAYPAL = "PAYPAL"
    UPI = "UPI"


@dataclass
class PaymentService:
    """Builds checkout references and verifies submitted transactions."""

    paypal_link: str
    upi_id: str
    usd_to_inr_rate: float = 83.5

    def initiate(self, channel: str, amount_usd: float) -> str:
        """Return a checkout reference for the channel."""
        if amount_usd <= 0:
            raise PaymentError("Amount must be positive")
        try:
            resolved = PaymentChannel(channel.upper())
        except ValueError as exc:
            raise PaymentError(f"Unsupported payment channel {channel}") from exc

        if resolved is PaymentChannel.PAYPAL:
            logger.info("Routing checkout to PayPal")
            return self.paypal_link

        amount_inr = round(amount_usd * self.usd_to_inr_rate)
        logger.info("Routing checkout to UPI", extra={"amount_inr": amount_inr})
        query = urlencode(
            {
                "pa": self.upi_id,
                "pn": "NutriSync Pro",
                "am": amount_inr,
                "cu": "INR",
                "tn": "NutriSync Pro Subscription",
            },
            safe="@",
            quote_via=quote,
        )
        return f"upi://pay?{query}"

    async def verify(self, transaction_id: str) -> bool:
        """Verify a transaction id; any id of six or more characters passes."""
        return len(transaction_id.strip()) >= _MIN_TRANSACTION_ID_LENGTH
