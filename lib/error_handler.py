from typing import Optional
import logging

logger = logging.getLogger(__name__)

class AppError(Exception):
    def __init__(self, message: str, status_code: int = 500, user_message: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.user_message = user_message or "⚠️ Bir hata oluştu. Lütfen daha sonra tekrar deneyin."
        super().__init__(self.message)

class AIUnavailableError(AppError):
    """AI provider timed out, failed or answered in an unusable format."""
    def __init__(self, message: str):
        super().__init__(message, status_code=503)

class StorageError(AppError):
    def __init__(self, message: str):
        super().__init__(
            message,
            status_code=500,
            user_message="⚠️ Kaydedilemedi. Lütfen birazdan tekrar deneyin."
        )

class MessagingError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=502)

class ErrorHandler:
    @staticmethod
    def handle_ai_error(error: Exception) -> None:
        logger.warning(f"AI unavailable: {str(error)}")

    @staticmethod
    def handle_meal_analysis_error(error: Exception) -> str:
        logger.error(f"Meal analysis error: {str(error)}")
        return "❌ Analiz yapılamadı.\nLütfen daha detaylı açıkla veya fotoğraf gönder."

    @staticmethod
    def handle_image_analysis_error(error: Exception) -> str:
        logger.error(f"Image analysis error: {str(error)}")
        return "❌ Resim analiz edilemedi. Tekrar dene."

    @staticmethod
    def handle_advice_error(error: Exception) -> str:
        logger.error(f"Nutrition advice error: {str(error)}")
        return "⚠️ Şu anda tavsiye alınamıyor. Lütfen daha sonra tekrar deneyin."

    @staticmethod
    def handle_storage_error(error: Exception) -> str:
        logger.error(f"Storage error: {str(error)}")
        return "⚠️ Kaydedilemedi. Lütfen birazdan tekrar deneyin."

    @staticmethod
    def handle_unexpected_error(error: Exception) -> str:
        logger.error(f"Unexpected error: {str(error)}", exc_info=True)
        return "⚠️ Bir hata oluştu. Lütfen tekrar deneyin."
