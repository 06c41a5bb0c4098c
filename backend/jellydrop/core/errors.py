"""异常类型模块

流水线各阶段抛出的类型化异常。除 QuarantineError 与 ConfigurationError 外，
所有单项目异常都会被处理器捕获并转入隔离区。
"""


class JellyDropError(Exception):
    """所有业务异常的基类"""

    #: 写入隔离记录和历史日志的简短原因
    reason: str = "processing failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.reason)

    @property
    def message(self) -> str:
        return str(self)


class ConfigurationError(JellyDropError):
    """配置无效，启动阶段直接终止"""

    reason = "invalid configuration"


class ClassificationError(JellyDropError):
    """无法从名称中解析出标题或季/集信息"""

    reason = "classification failed"


class StabilityError(JellyDropError):
    """项目在稳定性检查中未能稳定"""

    reason = "stability check failed"


class StabilityTimeoutError(StabilityError):
    reason = "stability timeout"


class ItemVanishedError(StabilityError):
    reason = "item vanished during stability check"


class TransferError(JellyDropError):
    """主媒体文件传输失败"""

    reason = "transfer failed"


class NoMediaFilesError(TransferError):
    reason = "no media files found"


class NotMediaFileError(TransferError):
    reason = "not a main media file"


class DestinationError(TransferError):
    reason = "destination not writable"


class DestinationConflictError(TransferError):
    reason = "destination already exists"


class InsufficientDiskSpaceError(TransferError):
    reason = "insufficient disk space"


class TransferTimeoutError(TransferError):
    reason = "transfer timed out"


class ChecksumMismatchError(TransferError):
    reason = "checksum mismatch after copy"


class AssociatedFileTransferError(JellyDropError):
    """附属文件传输失败，只记录日志，不影响整体结果"""

    reason = "associated file transfer failed"


class QuarantineError(JellyDropError):
    """移动到隔离区失败，项目留在原处需要人工处理"""

    reason = "quarantine failed"


__all__ = [
    "JellyDropError",
    "ConfigurationError",
    "ClassificationError",
    "StabilityError",
    "StabilityTimeoutError",
    "ItemVanishedError",
    "TransferError",
    "NoMediaFilesError",
    "NotMediaFileError",
    "DestinationError",
    "DestinationConflictError",
    "InsufficientDiskSpaceError",
    "TransferTimeoutError",
    "ChecksumMismatchError",
    "AssociatedFileTransferError",
    "QuarantineError",
]
