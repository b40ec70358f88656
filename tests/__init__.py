import uuid


def random_suffix() -> str:
    """랜덤 ID뒤에 붙일 UUID 기반의 6자리 임의의 ID를 생성합니다."""
    return uuid.uuid4().hex[:6]


def random_org(name: str = "") -> str:
    """임의의 조직(tenant) ID를 생성합니다."""
    return f"org-{name}-{random_suffix()}"


def random_title(num: int = 1) -> str:
    """임의의 캠페인 제목을 생성합니다."""
    return f"campaign-{num}-{random_suffix()}"
