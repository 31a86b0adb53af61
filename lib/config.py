from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import os

load_dotenv()

class Settings(BaseSettings):
    # OpenRouter settings (OpenAI compatible API)
    openrouter_api_key: str = os.getenv('OPENROUTER_API_KEY', '')
    openrouter_base_url: str = os.getenv('OPENROUTER_BASE_URL', 'https://openrouter.ai/api/v1')
    openrouter_model: str = os.getenv('OPENROUTER_MODEL', 'openai/gpt-4o-mini')
    ai_timeout_seconds: float = float(os.getenv('AI_TIMEOUT_SECONDS', '30'))

    # Twilio WhatsApp settings
    twilio_account_sid: str = os.getenv('TWILIO_ACCOUNT_SID', '')
    twilio_auth_token: str = os.getenv('TWILIO_AUTH_TOKEN', '')
    twilio_whatsapp_number: str = os.getenv('TWILIO_WHATSAPP_NUMBER', '')
    messaging_timeout_seconds: float = float(os.getenv('MESSAGING_TIMEOUT_SECONDS', '15'))

    @property
    def twilio_auth(self) -> tuple:
        return (self.twilio_account_sid, self.twilio_auth_token)

    # Supabase settings
    supabase_url: str = os.getenv('SUPABASE_URL', '')
    supabase_key: str = os.getenv('SUPABASE_KEY', '')

    # Bot behaviour
    default_timezone: str = os.getenv('DEFAULT_TIMEZONE', 'Europe/Istanbul')
    daily_image_limit: int = int(os.getenv('DAILY_IMAGE_LIMIT', '20'))
    suggestion_confidence_threshold: float = float(
        os.getenv('SUGGESTION_CONFIDENCE_THRESHOLD', '0.6'))

def get_settings() -> Settings:
    return Settings()
