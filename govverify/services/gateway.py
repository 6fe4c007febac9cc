"""
Outbound delivery to the WhatsApp messaging gateway.
"""

import logging

import httpx

from govverify.core.config import GATEWAY_TIMEOUT, WHATSAPP_API_KEY, WHATSAPP_SERVER_URL
from govverify.core.errors import GatewayDeliveryError

logger = logging.getLogger(__name__)


class GatewayClient:
    """POSTs {phoneE164, message} to the gateway's send endpoint with the API-key header."""

    def __init__(
        self,
        server_url: str = WHATSAPP_SERVER_URL,
        api_key: str = WHATSAPP_API_KEY,
        timeout: float = GATEWAY_TIMEOUT,
    ) -> None:
        self.send_url = f"{server_url.rstrip('/')}/send-whatsapp"
        self.api_key = api_key
        self.timeout = timeout

    async def send_message(self, phone: str, message: str) -> None:
        """Deliver one message. Raises GatewayDeliveryError on transport or HTTP errors."""
        logger.info("[gateway:send_message] IN  phone=%s message_len=%d", phone, len(message or ""))
        headers = {"X-API-Key": self.api_key, "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.send_url, json={"phoneE164": phone, "message": message}, headers=headers
                )
        except httpx.HTTPError as e:
            logger.error("[gateway:send_message] phone=%s failed: %s", phone, e)
            raise GatewayDeliveryError(phone, str(e)) from e
        if response.status_code >= 400:
            logger.error("[gateway:send_message] phone=%s status=%s", phone, response.status_code)
            raise GatewayDeliveryError(phone, f"gateway returned {response.status_code}")
        logger.info("[gateway:send_message] OUT phone=%s delivered", phone)
