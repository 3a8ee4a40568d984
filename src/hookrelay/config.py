"""hookrelay 配置

配置分为以下几类：
- 协议配置：envelope 版本与大小限制
- Socket 配置：本地 socket 路径
- 超时配置：forwarder 与 server 端超时
- 队列配置：Permission / Question 队列参数
- Feed 配置：标题与预览截断
- 日志 / 指标 / Web 配置
"""

import os

# === 协议配置 ===
PROTOCOL_VERSION = 1  # envelope 协议版本
MAX_ENVELOPE_BYTES = 16 * 1024 * 1024  # 单行 envelope 最大字节数

# === Socket 配置 ===
SOCKET_DIR = os.path.join(".claude", "run")  # 相对项目目录的 socket 目录
SOCKET_NAME = "hookrelay"  # socket 文件名前缀
SOCKET_MODE = 0o600  # socket 文件权限
INSTANCE_ID_ENV = "HOOKRELAY_INSTANCE_ID"  # 多实例时区分 socket 的环境变量
PROJECT_DIR_ENV = "CLAUDE_PROJECT_DIR"  # host 提供的项目目录环境变量

# === 超时配置 ===
FORWARDER_TIMEOUT_SECONDS = float(
    os.environ.get("HOOKRELAY_FORWARDER_TIMEOUT", "0.5")
)  # 不需要决策的 hook，forwarder 等待回复的上限（秒）
DECISION_GRACE_SECONDS = 1.0  # 需要决策的 hook，在 server 超时之外额外等待（秒）
DEFAULT_TIMEOUT_SECONDS = 4.0  # 默认交互超时（秒）
PERMISSION_TIMEOUT_SECONDS = 300.0  # 权限 / 问题类交互超时（秒）
AUTO_PASSTHROUGH_SECONDS = 0.25  # 纯通知类 hook 自动放行延迟（秒）

# === 退出码 ===
EXIT_OK = 0  # passthrough / json_output / 内部失败
EXIT_BLOCK = 2  # block_with_stderr

# === 队列配置 ===
QUEUE_MAX_SIZE = 256  # 队列最大长度
QUEUE_HIGH_WATERMARK = 0.75  # 高水位阈值（打印 debug 日志）

# === Feed 配置 ===
PROMPT_PREVIEW_LEN = 80  # run.start 中 prompt 预览长度
TITLE_MAX_LEN = 80  # feed 标题最大长度
DEFAULT_BLOCK_MESSAGE = "Blocked by hookrelay"  # block 回复缺少 stderr 时的默认文本

# === 日志配置 ===
LOG_LEVEL = os.environ.get("HOOKRELAY_LOG_LEVEL", "INFO")  # 日志级别
LOG_MAX_INPUT_LEN = 120  # 日志中 tool_input 截断长度

# === 指标配置 ===
METRICS_ENABLED = True  # 是否启用指标收集

# === Web 配置 ===
WEB_HOST = "127.0.0.1"  # 下游 API 监听地址
WEB_PORT = int(os.environ.get("HOOKRELAY_WEB_PORT", "8765"))  # 下游 API 端口
