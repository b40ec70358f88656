from __future__ import annotations

import abc
import enum
from dataclasses import dataclass
from dataclasses import fields as dataclass_fields
from typing import TYPE_CHECKING, Any, ClassVar, NamedTuple, Optional, Type, TypeVar

from fastuow.core.errors import FastUoWError

if TYPE_CHECKING:
    from fastuow.uow import UnitOfWorkContext

Fields = dict[str, Any]
"""필드 이름과 값의 딕셔너리. identity 필드는 포함하지 않습니다."""


class Identity(NamedTuple):
    """엔티티 식별자.

    엔티티 클래스와 키 튜플의 쌍입니다. 클래스가 다르면 키 값이 같아도 서로 다른
    identity 입니다.
    """

    kind: Type["Entity"]
    key: tuple

    def __repr__(self) -> str:
        return f"{self.kind.__name__}{self.key!r}"


def identity_of(kind: Type["Entity"], *key: Any) -> Identity:
    """`kind` 클래스와 키 값들로 :class:`Identity` 를 만듭니다."""
    if len(key) != len(kind.id_fields):
        raise FastUoWError(
            f"{kind.__name__} identity requires {len(kind.id_fields)} values"
            f" {kind.id_fields!r}, got {key!r}"
        )
    return Identity(kind, tuple(key))


E = TypeVar("E", bound="Entity")


class Entity:
    """변경 추적이 가능한 엔티티의 기본 클래스.

    ``@dataclass`` 로 선언된 하위 클래스에서 사용합니다. ``id_fields`` 에 지정된
    필드가 identity 가 되고, 나머지 필드는 추적 대상 필드입니다. ::

        @dataclass
        class Customer(Entity):
            id_fields = ("id", "org_id")

            id: int
            org_id: str
            name: str

    컨텍스트에 등록된 엔티티의 추적 필드에 값을 대입하면 소유 컨텍스트의
    :meth:`~fastuow.uow.UnitOfWorkContext.mark_dirty` 가 호출됩니다.
    identity 필드는 생성 후 변경할 수 없습니다.
    """

    id_fields: ClassVar[tuple[str, ...]] = ("id",)

    _context = None
    """현재 이 엔티티를 추적하는 컨텍스트. 없으면 ``None`` (detached)."""
    _snapshot = None
    """마지막으로 알려진 저장소 상태. 새로 만든 엔티티는 ``None``."""

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
            return

        if name in self.id_fields and name in self.__dict__:
            raise FastUoWError(
                f"identity field cannot be changed: {type(self).__name__}.{name}"
            )

        object.__setattr__(self, name, value)

        context: Optional[UnitOfWorkContext] = self._context
        if context is not None and name in self.field_names():
            context.mark_dirty(self)

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        """추적 대상 필드 이름 목록."""
        return tuple(
            f.name for f in dataclass_fields(cls) if f.name not in cls.id_fields
        )

    @classmethod
    def from_record(cls: Type[E], key: tuple, fields: Fields) -> E:
        """저장소에서 읽은 키와 필드 값으로 엔티티를 생성합니다.

        엔티티에 정의되지 않은 필드(컬럼)는 무시합니다.
        """
        names = cls.field_names()
        kwargs = dict(zip(cls.id_fields, key))
        kwargs.update((k, v) for k, v in fields.items() if k in names)
        return cls(**kwargs)  # type: ignore

    @property
    def identity(self) -> Identity:
        return Identity(type(self), tuple(getattr(self, n) for n in self.id_fields))

    def get_fields(self) -> Fields:
        """현재 추적 필드 값들을 리턴합니다."""
        return {name: getattr(self, name) for name in self.field_names()}

    def modified_fields(self) -> set[str]:
        """스냅샷과 값이 달라진 필드 이름들.

        스냅샷이 없으면 모든 필드가 변경된 것으로 봅니다.
        """
        if self._snapshot is None:
            return set(self.field_names())
        return {k for k, v in self.get_fields().items() if self._snapshot.get(k) != v}


class ConflictPolicy(enum.Enum):
    """다른 컨텍스트의 엔티티를 재등록할 때 저장소 상태와의 충돌 처리 방식."""

    KEEP_INCOMING = "keep_incoming"
    """저장소 상태와 상관없이 엔티티의 현재 값으로 덮어씁니다."""

    FAIL_ON_CONFLICT = "fail_on_conflict"
    """호출자가 바꾸지 않은 필드가 저장소에서 바뀌었다면 실패합니다."""


@dataclass(eq=False)
class TrackedEntry:
    """컨텍스트가 추적 중인 엔티티 하나의 상태."""

    entity: Entity
    context: UnitOfWorkContext
    snapshot: Optional[Fields] = None
    """로드(또는 마지막 커밋) 시점의 필드 값. 저장된 레코드가 없으면 ``None``."""
    dirty: bool = False
    removed: bool = False
    """커밋 시 삭제될 엔티티 여부."""

    @property
    def identity(self) -> Identity:
        return self.entity.identity

    def set_snapshot(self, snapshot: Optional[Fields]) -> None:
        """엔트리와 엔티티의 스냅샷을 함께 갱신합니다."""
        self.snapshot = snapshot
        self.entity._snapshot = dict(snapshot) if snapshot is not None else None


class AbstractStorageSession(abc.ABC):
    """컨텍스트 하나가 소유하는 저장소 연결(세션)의 추상 인터페이스.

    `persist`, `delete` 는 `commit` 이 호출되기 전까지 다른 세션에 보이지 않아야
    합니다. 충돌은 :class:`~fastuow.core.errors.ConcurrencyConflictError` 로, 그 밖의
    실패는 임의의 예외로 알립니다.
    """

    @abc.abstractmethod
    def fetch(self, identity: Identity) -> Optional[Fields]:
        """`identity` 에 해당하는 레코드의 필드를 조회합니다. 없으면 ``None``."""
        raise NotImplementedError

    @abc.abstractmethod
    def persist(self, identity: Identity, fields: Fields) -> None:
        """레코드를 저장합니다. 없으면 새로 추가합니다."""
        raise NotImplementedError

    @abc.abstractmethod
    def delete(self, identity: Identity) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def commit(self) -> None:
        """트랜잭션을 커밋합니다."""
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        """트랜잭션을 롤백합니다."""
        raise NotImplementedError

    @abc.abstractmethod
    def close(self) -> None:
        """세션과 연결된 자원을 반환합니다."""
        raise NotImplementedError


class AbstractStorage(abc.ABC):
    """저장소 추상 인터페이스. 컨텍스트마다 새 세션을 엽니다."""

    @abc.abstractmethod
    def connect(self) -> AbstractStorageSession:
        raise NotImplementedError
