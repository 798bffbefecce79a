"""커스텀 예외 클래스들"""

from typing import Optional


class InspectionError(Exception):
    """검사 시스템의 기본 예외 클래스"""
    pass


class ConfigurationError(InspectionError):
    """설정 관련 오류"""
    pass


class ValidationError(InspectionError):
    """데이터 검증 관련 오류 (서버로 전송되지 않음)"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidTransitionError(ValidationError):
    """허용되지 않는 롤 상태 전이"""
    pass


class NotFoundError(InspectionError):
    """요청한 롤 또는 결함이 존재하지 않음"""
    pass


class IntegrationError(InspectionError):
    """서버/네트워크 연동 오류"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
