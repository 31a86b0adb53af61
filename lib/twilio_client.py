from twilio.rest import Client
from twilio.http.http_client import TwilioHttpClient
from twilio.base.exceptions import TwilioRestException
import logging
from lib.config import get_settings
from lib.error_handler import MessagingError

logger = logging.getLogger(__name__)

WHATSAPP_PREFIX = "whatsapp:"

def to_whatsapp_address(phone: str) -> str:
    return phone if phone.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{phone}"

def from_whatsapp_address(address: str) -> str:
    return address[len(WHATSAPP_PREFIX):] if address.startswith(WHATSAPP_PREFIX) else address

class TwilioClient:
    def __init__(self, settings=None, client: Client = None):
        settings = settings or get_settings()
        self.phone_number = to_whatsapp_address(settings.twilio_whatsapp_number)
        if client is not None:
            self.client = client
            return
        try:
            # Each HTTP request is bounded by the messaging timeout
            self.client = Client(
                settings.twilio_account_sid,
                settings.twilio_auth_token,
                http_client=TwilioHttpClient(timeout=settings.messaging_timeout_seconds)
            )
            # Verify credentials
            self.client.api.accounts(settings.twilio_account_sid).fetch()
        except Exception as e:
            logger.error(f"Failed to initialize Twilio client: {str(e)}")
            raise MessagingError("Failed to initialize messaging service")

    def send_message(self, to_number: str, message: str) -> str:
        """Send a WhatsApp message and return the message SID."""
        try:
            message = self.client.messages.create(
                body=message,
                from_=self.phone_number,
                to=to_whatsapp_address(to_number)
            )
            logger.info(f"Message sent successfully to {to_number}")
            return message.sid
        except TwilioRestException as e:
            logger.error(f"Twilio error sending message: {str(e)}")
            if e.code == 63016:  # Outside the 24h customer care window
                raise MessagingError("Recipient is outside the WhatsApp session window.")
            elif e.code == 21211:  # Invalid phone number
                raise MessagingError("Invalid phone number format.")
            else:
                raise MessagingError(f"Failed to send message: {str(e)}")
        except Exception as e:
            logger.error(f"Unexpected error sending message: {str(e)}")
            raise MessagingError("An unexpected error occurred while sending the message.")
