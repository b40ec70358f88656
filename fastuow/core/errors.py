class FastUoWError(Exception):
    """``FastUoW`` 와 관련된 모든 에러의 기본 클래스."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(FastUoWError):
    """저장소에 주어진 identity 에 해당하는 레코드가 없을 때 발생합니다."""


class UntrackedEntityError(FastUoWError):
    """현재 컨텍스트에 등록되지 않은 엔티티를 변경하거나 커밋하려 할 때 발생합니다."""


class ConcurrencyConflictError(FastUoWError):
    """재등록(reattach) 시점에 저장소 상태가 원본 스냅샷과 달라졌을 때 발생합니다.

    자동으로 해결되지 않습니다. 호출자가 다시 로드 후 변경을 재적용하거나
    상위로 에러를 전달해야 합니다.
    """

    def __init__(self, message: str, fields: tuple[str, ...] = ()):
        super().__init__(message)
        self.fields = fields


class CommitFailure(FastUoWError):
    """저장소 쓰기 실패. 새 컨텍스트로 재시도 가능합니다."""


class ContextDisposedError(FastUoWError):
    """이미 해제(dispose)된 컨텍스트를 사용하려 할 때 발생합니다."""
