"""ORM 어댑터 모듈"""
from __future__ import annotations

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table

from fastuow.orm import TableMap
from tests.app.domain.models import Campaign, Customer


def init_tables(metadata: MetaData) -> TableMap:
    """도메인 엔티티별 테이블을 정의하고 매핑을 리턴합니다."""

    customer = Table(
        "customer",
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=False),
        Column("org_id", String(64), primary_key=True),
        Column("name", String(255), nullable=False),
        Column("email", String(255), unique=True, nullable=True),
        Column("credits", Integer, nullable=False, server_default="0"),
        extend_existing=True,
    )

    campaign = Table(
        "campaign",
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=False),
        Column("org_id", String(64), primary_key=True),
        Column("title", String(255), nullable=False),
        Column("budget", Integer, nullable=False),
        Column("sent", Boolean, nullable=False),
        extend_existing=True,
    )

    return {Customer: customer, Campaign: campaign}
