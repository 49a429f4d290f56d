"""领域层模型与状态变更。

包含：
- conversation: Message / Chat / ChatState 不可变状态模型。
- reducer: 作用于 ChatState 的纯函数状态变更。
- models: 与模型服务交互的 ChatRequest / ChatResult 等统一模型。
- exceptions: 业务异常类型定义。
"""
