"""UnitOfWork 컨텍스트 모듈.

하나의 논리적 작업(요청 하나, 잡 실행 한 번, 배치 항목 하나)마다 컨텍스트를 하나
생성하고, 작업이 끝나면 성공 여부와 상관없이 해제합니다. ::

    with UnitOfWorkContext(storage) as ctx:
        customer = ctx.load(Customer, 1, "acme")
        customer.name = "Bob"
        ctx.commit()

컨텍스트는 추적 중인 엔티티를 identity 별로 관리하며, 엔티티 하나는 동시에 하나의
컨텍스트에만 속합니다. 컨텍스트 A 에서 로드한 엔티티를 변경한 뒤 컨텍스트 B 를
커밋해도 아무 일도 일어나지 않습니다. B 가 A 의 변경을 저장하려면
:meth:`UnitOfWorkContext.reattach` 로 명시적으로 재등록해야 합니다.

주의:

    컨텍스트는 스레드 안전하지 않습니다. 하나의 컨텍스트를 여러 스레드나 태스크에서
    동시에 사용하지 마세요. 서로 다른 컨텍스트는 같은 저장소에 대해 병렬로 사용할 수
    있으며, 이때의 일관성은 저장소의 트랜잭션 격리 수준에 맡깁니다.
"""
from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Optional, Type, TypeVar, cast

from fastuow.core import (
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
from fastuow.core.models import Fields
from fastuow.logging import get_logger

E = TypeVar("E", bound=Entity)

logger = get_logger("fastuow.uow")


class UnitOfWorkContext(AbstractContextManager["UnitOfWorkContext"]):
    """엔티티 변경을 추적하고 한 번에 커밋하는 UnitOfWork 컨텍스트."""

    def __init__(self, storage: AbstractStorage) -> None:
        self.storage = storage
        self.session: Optional[AbstractStorageSession] = None
        self.entries: dict[Identity, TrackedEntry] = {}
        self.disposed = False

    def __repr__(self) -> str:
        state = "disposed" if self.disposed else f"{len(self.entries)} tracked"
        return f"UnitOfWorkContext[{state}]"

    def __enter__(self) -> UnitOfWorkContext:
        """``with`` 블록에 진입했을 때 실행되는 메소드입니다."""
        self._check_open()
        return self

    def __exit__(self, *args: Any) -> None:
        """``with`` 블록을 빠져나갈 때 컨텍스트를 해제합니다.

        커밋되지 않은 변경은 버려집니다.
        """
        self.dispose()

    def _check_open(self) -> None:
        if self.disposed:
            raise ContextDisposedError(f"{self!r} cannot be used after dispose()")

    def _get_session(self) -> AbstractStorageSession:
        """저장소 세션을 리턴합니다. 처음 필요할 때 연결합니다."""
        self._check_open()
        if self.session is None:
            self.session = self.storage.connect()
        return self.session

    def _entry_of(self, entity: Entity) -> TrackedEntry:
        entry = self.entries.get(entity.identity)
        if entry is None or entry.entity is not entity:
            raise UntrackedEntityError(
                f"{entity.identity!r} is not tracked by {self!r}"
            )
        return entry

    def _track(
        self, entity: Entity, snapshot: Optional[Fields], dirty: bool
    ) -> TrackedEntry:
        entry = TrackedEntry(entity, self, dirty=dirty)
        entry.set_snapshot(snapshot)
        self.entries[entity.identity] = entry
        entity._context = self
        return entry

    def _untrack(self, entry: TrackedEntry) -> None:
        del self.entries[entry.identity]
        if entry.entity._context is self:
            entry.entity._context = None

    def _release(self, entity: Entity) -> None:
        """다른 컨텍스트로 소유권이 넘어간 엔티티를 추적 목록에서 뺍니다."""
        entry = self.entries.get(entity.identity)
        if entry is not None and entry.entity is entity:
            self._untrack(entry)

    def _claim(self, entity: Entity) -> None:
        identity = entity.identity
        current = self.entries.get(identity)
        if current is not None and current.entity is not entity:
            raise FastUoWError(
                f"another instance of {identity!r} is already tracked by {self!r}"
            )

    def load(self, kind: Type[E], *key: Any) -> E:
        """저장소에서 엔티티를 읽어 추적을 시작합니다.

        이미 이 컨텍스트가 추적 중인 identity 라면 저장소를 조회하지 않고 같은
        인스턴스를 리턴합니다.

        Raises:
            :class:`NotFoundError`: 해당하는 레코드가 없을 때.
        """
        identity = identity_of(kind, *key)
        self._check_open()

        entry = self.entries.get(identity)
        if entry is not None:
            return cast(E, entry.entity)

        fields = self._get_session().fetch(identity)
        if fields is None:
            raise NotFoundError(f"record not found: {identity!r}")

        entity = kind.from_record(identity.key, fields)
        self._track(entity, entity.get_fields(), dirty=False)
        logger.debug("loaded %r", identity)
        return entity

    def get(self, kind: Type[E], *key: Any) -> Optional[E]:
        """추적 중인 엔티티를 리턴합니다. 저장소는 조회하지 않습니다."""
        self._check_open()
        entry = self.entries.get(identity_of(kind, *key))
        return cast(E, entry.entity) if entry else None

    def is_tracked(self, entity: Entity) -> bool:
        entry = self.entries.get(entity.identity)
        return entry is not None and entry.entity is entity

    @property
    def dirty(self) -> list[Entity]:
        """다음 커밋에 저장될 엔티티 목록."""
        return [e.entity for e in self.entries.values() if e.dirty]

    def mark_dirty(self, entity: Entity) -> None:
        """엔티티를 변경된 상태로 표시합니다.

        추적 필드에 값을 대입하면 자동으로 호출됩니다.

        Raises:
            :class:`UntrackedEntityError`: 이 컨텍스트가 추적하지 않는 엔티티일 때.
        """
        self._check_open()
        self._entry_of(entity).dirty = True

    def add(self, entity: Entity) -> None:
        """새 엔티티의 추적을 시작합니다. 다음 커밋에서 저장소에 추가됩니다."""
        self._check_open()
        if entity._context is not None and entity._context is not self:
            raise FastUoWError(
                f"{entity.identity!r} is tracked by another context, use reattach()"
            )
        if self.is_tracked(entity):
            return
        if entity.identity in self.entries:
            raise FastUoWError(f"{entity.identity!r} is already tracked by {self!r}")
        self._track(entity, None, dirty=True)

    def reattach(self, entity: Entity, policy: ConflictPolicy) -> None:
        """다른 컨텍스트에서 로드했거나 분리된 엔티티를 이 컨텍스트에 등록합니다.

        등록된 엔티티는 변경된 상태(dirty)가 되어 다음 커밋에서 저장됩니다. 이전
        컨텍스트는 더 이상 이 엔티티를 추적하지 않습니다.

        Args:
            entity: 재등록할 엔티티.
            policy: 저장소의 현재 상태가 엔티티의 원본 스냅샷과 다를 때의 처리 방식.

        Raises:
            :class:`ConcurrencyConflictError`: ``FAIL_ON_CONFLICT`` 정책에서 호출자가
                바꾸지 않은 필드가 저장소에서 바뀌었을 때.
        """
        self._check_open()
        self._claim(entity)

        if self.is_tracked(entity):
            self.entries[entity.identity].dirty = True
            return

        persisted = self._get_session().fetch(entity.identity)
        if policy is ConflictPolicy.FAIL_ON_CONFLICT:
            self._check_conflicts(entity, persisted)

        previous = entity._context
        if previous is not None:
            previous._release(entity)

        snapshot = None
        if persisted is not None:
            names = entity.field_names()
            snapshot = {k: v for k, v in persisted.items() if k in names}
        self._track(entity, snapshot, dirty=True)
        logger.debug("reattached %r (%s)", entity.identity, policy.value)

    def _check_conflicts(self, entity: Entity, persisted: Optional[Fields]) -> None:
        identity, original = entity.identity, entity._snapshot

        if persisted is None:
            if original is not None:
                raise ConcurrencyConflictError(
                    f"{identity!r} was deleted since it was loaded"
                )
            return

        if original is None:
            raise ConcurrencyConflictError(f"{identity!r} already exists in storage")

        touched = entity.modified_fields()
        conflicts = tuple(
            name
            for name in entity.field_names()
            if name not in touched and persisted.get(name) != original.get(name)
        )
        if conflicts:
            raise ConcurrencyConflictError(
                f"{identity!r} changed in storage: {', '.join(conflicts)}",
                fields=conflicts,
            )

    def remove(self, entity: Entity) -> None:
        """추적 중인 엔티티를 다음 커밋에서 삭제하도록 표시합니다."""
        self._check_open()
        entry = self._entry_of(entity)
        if entry.snapshot is None:
            # 아직 저장된 적 없는 엔티티는 추적만 중단합니다.
            self._untrack(entry)
            return
        entry.removed = entry.dirty = True

    def detach(self, entity: Entity) -> None:
        """엔티티의 추적을 중단합니다. 변경 내용은 저장되지 않습니다."""
        self._check_open()
        self._untrack(self._entry_of(entity))

    def commit(self) -> int:
        """변경된 모든 엔티티를 하나의 트랜잭션으로 저장합니다.

        실패하면 저장소 트랜잭션을 롤백하고 추적 상태는 그대로 둡니다. 같은 컨텍스트나
        새 컨텍스트로 다시 시도할 수 있습니다.

        Returns:
            저장(또는 삭제)된 엔티티 수.

        Raises:
            :class:`CommitFailure`: 저장소 쓰기가 실패했을 때.
            :class:`ConcurrencyConflictError`: 저장소가 충돌을 보고했을 때.
        """
        self._check_open()
        pending = [entry for entry in self.entries.values() if entry.dirty]
        if not pending:
            return 0

        session = self._get_session()
        written: list[tuple[TrackedEntry, Optional[Fields]]] = []
        try:
            for entry in pending:
                if entry.removed:
                    session.delete(entry.identity)
                    written.append((entry, None))
                else:
                    fields = entry.entity.get_fields()
                    session.persist(entry.identity, fields)
                    written.append((entry, fields))
            session.commit()
        except ConcurrencyConflictError:
            self._rollback_session(session)
            logger.warning("commit rejected by storage, %d entries", len(pending))
            raise
        except Exception as ex:
            self._rollback_session(session)
            count = len(pending)
            logger.warning("commit failed, %d entries rolled back: %r", count, ex)
            raise CommitFailure(f"failed to commit {count} entries: {ex}") from ex

        for entry, fields in written:
            if fields is None:
                self._untrack(entry)
            else:
                entry.set_snapshot(fields)
                entry.dirty = False

        logger.debug("committed %d entries", len(written))
        return len(written)

    def _rollback_session(self, session: AbstractStorageSession) -> None:
        # 롤백 실패가 커밋 실패의 원인 에러를 가리지 않도록 합니다.
        try:
            session.rollback()
        except Exception as ex:
            logger.warning("storage rollback failed: %r", ex)

    def rollback(self) -> None:
        """커밋되지 않은 변경을 마지막 스냅샷으로 되돌립니다.

        새로 추가한 엔티티는 추적에서 빠지고, 삭제 표시는 취소됩니다.
        """
        self._check_open()
        for entry in list(self.entries.values()):
            if not entry.dirty:
                continue
            if entry.snapshot is None:
                self._untrack(entry)
                continue

            entity = entry.entity
            entity._context = None  # 복원 중에는 mark_dirty 가 호출되지 않도록
            for name, value in entry.snapshot.items():
                setattr(entity, name, value)
            entity._context = self
            entry.dirty = entry.removed = False

    def dispose(self) -> None:
        """저장소 세션을 반환하고 모든 추적 상태를 버립니다.

        여러 번 호출해도 안전합니다. 추적하던 엔티티는 분리(detached)되지만 마지막
        스냅샷은 유지하므로 나중에 다른 컨텍스트에 재등록할 수 있습니다.
        """
        if self.disposed:
            return
        self.disposed = True

        for entry in list(self.entries.values()):
            self._untrack(entry)

        session, self.session = self.session, None
        if session is not None:
            session.close()
