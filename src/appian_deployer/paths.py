"""Unified path constants for appian-deployer."""

from pathlib import Path
from typing import Optional

# 配置文件（在当前工作目录下，可选）
DEFAULT_CONFIG_PATH = Path("appian-deployer.json")

ARTIFACT_SUFFIX = ".zip"


def get_download_dir(configured: Optional[str] = None) -> Path:
    """获取下载目录路径，不存在时创建."""
    directory = Path(configured) if configured else Path(".")
    directory.mkdir(parents=True, exist_ok=True)
    return directory
