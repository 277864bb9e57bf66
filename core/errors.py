"""
원장 오류 정의

HTTP 상태 코드와 1:1로 대응되는 예외 계층.
Web 계층의 exception handler가 status_code로 응답을 만든다.
"""

from typing import Any


class LedgerError(Exception):
    """원장 오류 기본 클래스

    Args:
        message: 호출자에게 노출되는 메시지
        details: 응답 data 필드에 실릴 부가 정보 (선택)
    """

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(LedgerError):
    """입력 오류 (불균형 분개, 분개 부족, 자금 초과 사용 등)"""

    status_code = 400


class AuthError(LedgerError):
    """인증 오류 (행위자 없음, 소유자 아님)"""

    status_code = 401


class NotFoundError(LedgerError):
    """존재하지 않는 거래/계정"""

    status_code = 404


class ConflictError(LedgerError):
    """상태 가드 위반, 동시 수정 충돌, 중복 번호"""

    status_code = 409


class InternalError(LedgerError):
    """예상하지 못한 오류 (DB 장애 등)

    상세 내용은 서버 로그에만 남기고 호출자에게는 일반 메시지만 전달.
    """

    status_code = 500

    def __init__(self, message: str = "Internal server error", details: dict[str, Any] | None = None):
        super().__init__(message, details)
