"""FastUoW - 작업 단위(Unit of Work)별 변경 추적 컨텍스트."""
from fastuow.config import FastUoW  # noqa
from fastuow.core import (  # noqa
    AbstractStorage,
    AbstractStorageSession,
    CommitFailure,
    ConcurrencyConflictError,
    ConflictPolicy,
    ContextDisposedError,
    Entity,
    FastUoWError,
    Identity,
    NotFoundError,
    TrackedEntry,
    UntrackedEntityError,
    identity_of,
)
from fastuow.retry import run_in_context  # noqa
from fastuow.uow import UnitOfWorkContext  # noqa

__version__ = "0.1"
