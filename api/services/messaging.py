import asyncio
import logging

from lib.error_handler import MessagingError
from lib.twilio_client import TwilioClient

logger = logging.getLogger(__name__)

class MessagingService:
    def __init__(self, twilio_client: TwilioClient, timeout: float = 15.0):
        self.client = twilio_client
        self.timeout = timeout
        logger.info(f"Messaging service initialized with sender: {twilio_client.phone_number}")

    async def send(self, to_number: str, message: str) -> bool:
        """Send a WhatsApp message; returns False instead of raising on failure"""
        try:
            logger.info(f"Sending message to {to_number}: {message[:20]}...")
            # Run Twilio API call in an executor to prevent blocking
            loop = asyncio.get_running_loop()
            await asyncio.wait_for(
                loop.run_in_executor(
                    None,
                    lambda: self.client.send_message(to_number, message)
                ),
                timeout=self.timeout
            )
            return True
        except asyncio.TimeoutError:
            logger.error(f"Sending message to {to_number} timed out after {self.timeout}s")
            return False
        except MessagingError as e:
            logger.error(f"Failed to send message to {to_number}: {e.message}")
            return False
