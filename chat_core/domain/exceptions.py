"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层或会话协调层做统一捕获与用户提示。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 chat_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class MissingCredential(BusinessError):
    """未配置 API 密钥，调用方应引导用户打开设置。"""

    def __init__(self, message: str = "API key is required", **extra):
        super().__init__(code="MISSING_CREDENTIAL", message=message, http_status=400, **extra)


class NotFound(BusinessError):
    """引用的会话不存在。"""

    def __init__(self, message: str, **extra):
        super().__init__(code="NOT_FOUND", message=message, http_status=404, **extra)


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class UpstreamRequestError(BusinessError):
    """模型服务返回非 2xx 响应。"""


class RateLimitError(UpstreamRequestError):
    """Provider 限流错误，本项目不做自动重试。"""


class UpstreamFetchError(BusinessError):
    """中转接口无法从上游拉取图片。"""

    def __init__(self, message: str = "Failed to fetch image from upstream", **extra):
        super().__init__(code="UPSTREAM_FETCH_ERROR", message=message, http_status=502, **extra)


class BadRequest(BusinessError):
    """中转/代理接口收到的请求缺少必要字段。"""

    def __init__(self, message: str, **extra):
        super().__init__(code="BAD_REQUEST", message=message, http_status=400, **extra)


class SerializationError(BusinessError):
    """持久化状态无法解析。"""

    def __init__(self, message: str, **extra):
        super().__init__(code="SERIALIZATION_ERROR", message=message, http_status=500, **extra)
