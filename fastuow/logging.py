"""FastUoW 로거 팩토리."""
import logging
import os
from typing import Optional, Union

from uvicorn.logging import DefaultFormatter

LOG_LEVEL_ENV = "FASTUOW_LOG_LEVEL"
"""기본 로그 레벨을 지정하는 환경 변수 이름."""


def get_logger(name: str, log_level: Optional[Union[int, str]] = None) -> logging.Logger:
    """`name` 로거를 리턴합니다.

    핸들러는 로거마다 한 번만 추가됩니다. `log_level` 이 없으면
    ``FASTUOW_LOG_LEVEL`` 환경 변수(기본 ``INFO``)를 사용합니다.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        level = log_level or os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
        logger.setLevel(level)
        handler = logging.StreamHandler()
        handler.setFormatter(
            DefaultFormatter(fmt="%(levelprefix)s [%(name)s] %(message)s")
        )
        logger.addHandler(handler)

    return logger
