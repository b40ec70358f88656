from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine


def insert_customer(
    engine: Engine,
    id: int,
    org_id: str,
    name: str,
    email: Optional[str] = None,
    credits: int = 0,
) -> None:
    with engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO customer (id, org_id, name, email, credits)"
                " VALUES (:id, :org_id, :name, :email, :credits)"
            ),
            dict(id=id, org_id=org_id, name=name, email=email, credits=credits),
        )


def update_customer(engine: Engine, id: int, org_id: str, **fields: Any) -> None:
    """컨텍스트를 거치지 않고 레코드를 직접 수정합니다. (다른 사용자의 변경)"""
    assignments = ", ".join(f"{name} = :{name}" for name in fields)
    with engine.begin() as conn:
        conn.execute(
            text(f"UPDATE customer SET {assignments} WHERE id=:id AND org_id=:org_id"),
            dict(fields, id=id, org_id=org_id),
        )


def select_customer(engine: Engine, id: int, org_id: str) -> Optional[dict[str, Any]]:
    with engine.connect() as conn:
        row = (
            conn.execute(
                text(
                    "SELECT name, email, credits FROM customer"
                    " WHERE id=:id AND org_id=:org_id"
                ),
                dict(id=id, org_id=org_id),
            )
            .mappings()
            .first()
        )
    return dict(row) if row else None
