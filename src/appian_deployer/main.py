"""Console entry point: ``appian-deployer`` / ``python -m appian_deployer.main``."""

from __future__ import annotations

import sys

from .cli import run_cli
from .utils.logging import get_logger

logger = get_logger(__name__)


def app_main() -> None:
    # 退出码供 CI 流水线判断部署结果
    exit_code = run_cli(sys.argv[1:])
    logger.debug("Exiting with code %d", exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    app_main()
