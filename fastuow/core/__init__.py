from .errors import (  # noqa
    CommitFailure,
    ConcurrencyConflictError,
    ContextDisposedError,
    FastUoWError,
    NotFoundError,
    UntrackedEntityError,
)
from .models import (  # noqa
    AbstractStorage,
    AbstractStorageSession,
    ConflictPolicy,
    Entity,
    Identity,
    TrackedEntry,
    identity_of,
)
