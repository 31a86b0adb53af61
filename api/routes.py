from flask import Flask, request, Response
import logging
import sys
import asyncio
from supabase import create_client, Client
from twilio.twiml.messaging_response import MessagingResponse

from lib.config import get_settings
from lib.openai_client import OpenAIClient
from lib.twilio_client import TwilioClient, from_whatsapp_address
from .conversation_router import ConversationRouter
from .models import InboundMessage
from .services.ai import AIService
from .services.messaging import MessagingService
from .services.storage import StorageService

# Configure detailed logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout,
    force=True  # Ensure our config takes precedence
)

logger = logging.getLogger(__name__)


def build_router(settings=None) -> ConversationRouter:
    """Wire the production clients into a router"""
    settings = settings or get_settings()

    logger.info("Initializing Supabase client...")
    try:
        supabase: Client = create_client(settings.supabase_url, settings.supabase_key)
        logger.info("Supabase client initialized successfully")
    except Exception as e:
        logger.error(f"Error initializing Supabase client: {str(e)}")
        raise

    logger.info("Initializing AI client...")
    ai_service = AIService(
        openai_client=OpenAIClient(settings),
        timeout=settings.ai_timeout_seconds,
        media_auth=settings.twilio_auth
    )

    logger.info("Initializing Twilio client...")
    messaging_service = MessagingService(
        twilio_client=TwilioClient(settings),
        timeout=settings.messaging_timeout_seconds
    )

    router = ConversationRouter(
        storage=StorageService(supabase),
        ai=ai_service,
        messaging=messaging_service,
        settings=settings
    )
    logger.info("All services initialized successfully")
    return router


def parse_inbound(form) -> tuple:
    """Sender phone and message payload from a Twilio WhatsApp webhook form"""
    phone = from_whatsapp_address(form.get('From', ''))
    image_url = None
    content_type = None

    if int(form.get('NumMedia', 0) or 0) > 0:
        media_type = form.get('MediaContentType0', '')
        # Only images are meals; voice notes and documents are treated as text
        if media_type.startswith('image/'):
            image_url = form.get('MediaUrl0')
            content_type = media_type
        else:
            logger.info(f"Ignoring non-image media: {media_type}")

    payload = InboundMessage(
        text=form.get('Body', ''),
        image_url=image_url,
        content_type=content_type
    )
    return phone, payload


def create_app(router: ConversationRouter = None) -> Flask:
    app = Flask(__name__)
    app.config['router'] = router

    def get_router() -> ConversationRouter:
        if app.config['router'] is None:
            app.config['router'] = build_router()
        return app.config['router']

    @app.route("/webhook", methods=['POST'])
    def webhook():
        """Twilio WhatsApp webhook; the reply goes out through the REST API, so the TwiML stays empty"""
        form = request.form.to_dict()
        logger.info(f"Webhook received: {form}")

        phone, payload = parse_inbound(form)
        if not phone:
            logger.warning("Webhook without sender, ignoring")
            return Response(str(MessagingResponse()), status=400, mimetype='text/xml')

        try:
            asyncio.run(get_router().handle_inbound_message(phone, payload))
        except Exception as e:
            logger.error(f"Webhook error: {str(e)}", exc_info=True)

        return Response(str(MessagingResponse()), mimetype='text/xml')

    @app.route('/', methods=['GET'])
    def root():
        """Basic health check"""
        return {'status': 'healthy'}

    @app.route("/test", methods=['GET'])
    def test():
        """Test endpoint to verify server is running"""
        return {
            "status": "ok",
            "message": "Server is running"
        }

    return app
