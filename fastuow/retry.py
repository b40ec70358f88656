"""커밋 실패 시 새 컨텍스트로 작업을 다시 실행하는 헬퍼."""
import logging
from typing import Callable, Optional, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from fastuow.core import CommitFailure
from fastuow.logging import get_logger
from fastuow.uow import UnitOfWorkContext

T = TypeVar("T")
ContextFactory = Callable[[], UnitOfWorkContext]
"""UnitOfWorkContext 팩토리 타입."""

logger = get_logger("fastuow.retry")


def run_in_context(
    context_factory: ContextFactory,
    func: Callable[[UnitOfWorkContext], T],
    attempts: int = 3,
    wait: Optional[wait_base] = None,
) -> T:
    """`func` 를 새 컨텍스트에서 실행하고 커밋합니다.

    :class:`~fastuow.core.errors.CommitFailure` 가 발생하면 매번 새 컨텍스트를
    만들어 `attempts` 번까지 다시 시도합니다. 충돌(``ConcurrencyConflictError``)을
    포함한 다른 에러는 재시도하지 않습니다. ::

        def rename(ctx):
            ctx.load(Customer, 1, "acme").name = "Bob"

        run_in_context(lambda: UnitOfWorkContext(storage), rename)

    Returns:
        마지막으로 성공한 `func` 호출의 리턴 값.
    """
    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait if wait is not None else wait_exponential(multiplier=0.1, max=2),
        retry=retry_if_exception_type(CommitFailure),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    for attempt in retrying:
        with attempt:
            with context_factory() as ctx:
                result = func(ctx)
                ctx.commit()
    return result
