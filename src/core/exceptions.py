"""앱 전역 커스텀 예외 클래스.

AppException을 상속하면 전역 핸들러(error_handlers.py)가 자동으로
{"error_code": "...", "message": "..."} 형식의 JSON 응답을 생성한다.

PipelineError 계열은 HTTP 응답으로 바로 나가지 않는다. 백그라운드 파이프라인
각 단계가 로그를 남기고 다시 던지면, 레코드 상태는 오케스트레이터만 결정한다.
"""


class AppException(Exception):
    """앱 전역 베이스 예외.

    서브클래스에서 status_code, error_code, message를 클래스 변수로 정의하면
    전역 핸들러가 해당 값을 읽어 HTTP 응답을 생성한다.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "서버 내부 오류가 발생했습니다"

    def __init__(self, message: str | None = None, headers: dict[str, str] | None = None):
        if message:
            self.message = message
        self.headers = headers
        super().__init__(self.message)


# --- 요청 검증 ---


class MissingFields(AppException):
    status_code = 400
    error_code = "MISSING_FIELDS"
    message = "필수 항목이 누락되었습니다"


class InvalidModelParameters(AppException):
    status_code = 400
    error_code = "INVALID_MODEL_PARAMETERS"
    message = "선택한 모델이 지원하지 않는 생성 옵션입니다"


class InvalidSyncAction(AppException):
    status_code = 400
    error_code = "INVALID_SYNC_ACTION"
    message = 'action="initialize" 또는 videoId, gcsUri와 함께 action="sync"를 사용하세요'


class InvalidAdminAction(AppException):
    status_code = 400
    error_code = "INVALID_ACTION"
    message = 'action은 "enable", "disable", "status" 중 하나여야 합니다'


class InvalidVideoId(AppException):
    status_code = 400
    error_code = "INVALID_VIDEO_ID"
    message = "비디오 ID는 영문, 숫자, _, - 만 사용할 수 있습니다 (최대 255자)"


# --- 관리자 ---


class InvalidAdminKey(AppException):
    status_code = 403
    error_code = "INVALID_ADMIN_KEY"
    message = "잘못된 관리자 키입니다"


class AdminKeyNotConfigured(AppException):
    status_code = 500
    error_code = "ADMIN_KEY_NOT_CONFIGURED"
    message = "서버에 관리자 키가 설정되어 있지 않습니다"


class GenerationDisabled(AppException):
    status_code = 403
    error_code = "GENERATION_DISABLED"
    message = "비디오 생성 기능이 관리자에 의해 비활성화되어 있습니다"


# --- 비디오 레코드 ---


class VideoNotFound(AppException):
    status_code = 404
    error_code = "VIDEO_NOT_FOUND"
    message = "비디오를 찾을 수 없습니다"


class ThumbnailNotFound(AppException):
    status_code = 404
    error_code = "THUMBNAIL_NOT_FOUND"
    message = "썸네일을 찾을 수 없습니다"


class DuplicateVideo(AppException):
    status_code = 409
    error_code = "DUPLICATE_VIDEO"
    message = "이미 존재하는 비디오 ID입니다"


class GenerationInProgress(AppException):
    status_code = 409
    error_code = "GENERATION_IN_PROGRESS"
    message = "이미 생성 작업이 진행 중인 비디오입니다"


class InvalidStatusTransition(AppException):
    status_code = 409
    error_code = "INVALID_STATUS_TRANSITION"
    message = "허용되지 않는 상태 전이입니다"


class RangeNotSatisfiable(AppException):
    status_code = 416
    error_code = "RANGE_NOT_SATISFIABLE"
    message = "요청한 바이트 범위가 올바르지 않습니다"


# --- 외부 서비스 ---


class TranslationFailed(AppException):
    status_code = 502
    error_code = "TRANSLATION_FAILED"
    message = "Workflow start failed"


class StoreUnavailable(AppException):
    status_code = 503
    error_code = "STORE_UNAVAILABLE"
    message = "데이터베이스에 연결할 수 없습니다"


# --- 파이프라인 내부 오류 ---


class PipelineError(Exception):
    """백그라운드 파이프라인 단계에서 발생하는 오류의 베이스."""


class TranslationError(PipelineError):
    pass


class GenerationError(PipelineError):
    pass


class NoVideosGenerated(GenerationError):
    pass


class PollTimeout(GenerationError):
    pass


class InvalidGcsUri(PipelineError):
    pass


class GcsObjectNotFound(PipelineError):
    pass


class StorageUnavailable(PipelineError):
    pass


class EmptyDownload(PipelineError):
    pass


class MediaProcessingTimeout(PipelineError):
    pass


class FileRelocationFailed(PipelineError):
    pass
