from fastapi import status


class MediaError(Exception):
    """الخطأ الأساسي لخط معالجة الوسائط، يحمل رمز HTTP المناسب."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "حدث خطأ أثناء معالجة الملف."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class UnsupportedMediaType(MediaError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    default_message = "نوع الملف غير مدعوم."


class PayloadTooLarge(MediaError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_message = "حجم الملف يتجاوز الحد المسموح."


class CompressionFailed(MediaError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "تعذر ضغط الملف."


class JobNotFound(MediaError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "مهمة الضغط غير موجودة أو انتهت صلاحيتها."
