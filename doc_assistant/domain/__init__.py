"""领域层模型与协议。

包含：
- models: 统一的 Message / AssistantSettings / DocumentContext / StreamRequest 模型。
- conversation: 会话记录 Transcript 与会话状态。
- cancellation: 协作式取消令牌。
- storage: 本地键值存储协议。
- exceptions: 业务异常类型定义。
"""
