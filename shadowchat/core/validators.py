import re
from typing import Any, List, Optional, Union

from .errors import ValidationException, ValidationError


# 입력 길이 제한
MAX_ROOM_NAME_LENGTH = 50
MAX_NICKNAME_LENGTH = 20
MAX_MESSAGE_LENGTH = 300


class Validator:
    """입력 검증을 위한 유틸리티 클래스"""

    @staticmethod
    def validate_required(value: Any, field_name: str, message: Optional[str] = None) -> Any:
        """필수 필드 검증"""
        if value is None or (isinstance(value, str) and value.strip() == ""):
            raise ValidationException(
                message or f"{field_name} is required",
                validation_errors=[
                    ValidationError(field=field_name, message="This field is required", value=value)
                ]
            )
        return value

    @staticmethod
    def validate_string_length(
        value: str,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        message: Optional[str] = None
    ) -> str:
        """문자열 길이 검증"""
        errors = []

        if min_length and len(value) < min_length:
            errors.append(
                ValidationError(
                    field=field_name,
                    message=f"Must be at least {min_length} characters long",
                    value=len(value)
                )
            )

        if max_length and len(value) > max_length:
            errors.append(
                ValidationError(
                    field=field_name,
                    message=f"Must be no more than {max_length} characters long",
                    value=len(value)
                )
            )

        if errors:
            raise ValidationException(
                message or f"{field_name} length validation failed",
                validation_errors=errors
            )

        return value

    @staticmethod
    def validate_room_name(name: Optional[str], field_name: str = "name") -> str:
        """채팅방 이름 검증 (공백 불가, 최대 50자)"""
        Validator.validate_required(name, field_name, "Room name cannot be empty")
        Validator.validate_string_length(
            name,
            field_name,
            max_length=MAX_ROOM_NAME_LENGTH,
            message=f"Room name must be at most {MAX_ROOM_NAME_LENGTH} characters"
        )
        return name.strip()

    @staticmethod
    def validate_nickname(nickname: Optional[str], field_name: str = "nickname") -> str:
        """닉네임 검증 (공백 불가, 최대 20자, < > 금지)"""
        Validator.validate_required(nickname, field_name, "Nickname cannot be empty")
        Validator.validate_string_length(
            nickname,
            field_name,
            max_length=MAX_NICKNAME_LENGTH,
            message=f"Nickname must be at most {MAX_NICKNAME_LENGTH} characters"
        )

        if "<" in nickname or ">" in nickname:
            raise ValidationException(
                "Nickname cannot contain < or >",
                validation_errors=[
                    ValidationError(
                        field=field_name,
                        message="Angle brackets are not allowed",
                        value=nickname
                    )
                ]
            )

        return nickname.strip()

    @staticmethod
    def validate_message_content(content: Optional[str], field_name: str = "content") -> str:
        """텍스트 메시지 내용 검증 (공백 불가, 최대 300자)"""
        Validator.validate_required(content, field_name, "Message cannot be empty")
        Validator.validate_string_length(
            content,
            field_name,
            max_length=MAX_MESSAGE_LENGTH,
            message=f"Message must be at most {MAX_MESSAGE_LENGTH} characters"
        )

        # 제어 문자 검증
        if re.search(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', content):
            raise ValidationException(
                "Message contains invalid control characters",
                validation_errors=[
                    ValidationError(
                        field=field_name,
                        message="Message content contains invalid control characters"
                    )
                ]
            )

        return content.strip()

    @staticmethod
    def validate_enum(value: str, allowed_values: List[str], field_name: str, message: Optional[str] = None) -> str:
        """열거형 값 검증"""
        if value not in allowed_values:
            raise ValidationException(
                message or f"Invalid {field_name}",
                validation_errors=[
                    ValidationError(
                        field=field_name,
                        message=f"Must be one of: {', '.join(allowed_values)}",
                        value=value
                    )
                ]
            )
        return value

    @staticmethod
    def validate_file_size(file_size: int, max_size: int, field_name: str = "file_size") -> int:
        """파일 크기 검증"""
        if file_size <= 0:
            raise ValidationException(
                "File is empty",
                validation_errors=[
                    ValidationError(
                        field=field_name,
                        message="File size must be greater than 0",
                        value=file_size
                    )
                ]
            )

        if file_size > max_size:
            max_size_mb = max_size / (1024 * 1024)
            raise ValidationException(
                f"File too large. Maximum size: {max_size_mb:g}MB",
                validation_errors=[
                    ValidationError(
                        field=field_name,
                        message=f"File size must be no more than {max_size_mb:g}MB",
                        value=file_size
                    )
                ]
            )

        return file_size

    @staticmethod
    def validate_positive_integer(value: Union[int, str], field_name: str) -> int:
        """양의 정수 검증"""
        try:
            int_value = int(value)
            if int_value <= 0:
                raise ValueError("Must be positive")
            return int_value
        except (ValueError, TypeError):
            raise ValidationException(
                f"{field_name} must be a positive integer",
                validation_errors=[
                    ValidationError(
                        field=field_name,
                        message="Must be a positive integer",
                        value=value
                    )
                ]
            )
