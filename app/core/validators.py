import re
from typing import Any, List

from bson import ObjectId

from .errors import ValidationException, ValidationError

# 탭/개행(\t \n \r)을 제외한 제어 문자
CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')


def _fail(message: str, errors: List[ValidationError]):
    raise ValidationException(message, validation_errors=errors)


class Validator:
    """요청 입력 검증"""

    @staticmethod
    def validate_required(value: Any, field_name: str) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            _fail(f"{field_name} is required", [
                ValidationError(field=field_name, message="This field is required", value=value)
            ])
        return value

    @staticmethod
    def validate_object_id(value: str, field_name: str) -> str:
        """상품/사용자 ID는 마켓플레이스 MongoDB의 ObjectId 문자열"""
        if not isinstance(value, str) or not ObjectId.is_valid(value):
            _fail(f"Invalid {field_name}", [
                ValidationError(field=field_name, message="Must be a 24-character hex ObjectId", value=value)
            ])
        return value

    @staticmethod
    def validate_message_content(content: str, max_length: int = 2000, field_name: str = "content") -> str:
        """
        채팅 메시지 검증.

        Returns:
            str: 앞뒤 공백을 제거한 메시지

        Raises:
            ValidationException: 빈 메시지, 최대 길이 초과, 제어 문자 포함
        """
        stripped = (content or "").strip()
        errors = []

        if not stripped:
            errors.append(ValidationError(field=field_name, message="Message cannot be empty"))
        elif len(stripped) > max_length:
            errors.append(ValidationError(
                field=field_name,
                message=f"Message content must be no more than {max_length} characters",
                value=len(stripped)
            ))

        if CONTROL_CHARS.search(stripped):
            errors.append(ValidationError(
                field=field_name,
                message="Message content contains invalid control characters"
            ))

        if errors:
            _fail("Message content validation failed", errors)
        return stripped
