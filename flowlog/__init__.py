"""FlowLog：番茄钟、深度工作与 Make Time 的专注计时与统计引擎。"""

from .cli import main

__version__ = "0.1.0"

__all__ = ["main", "__version__"]
