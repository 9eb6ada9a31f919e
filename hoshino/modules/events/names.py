"""
事件名称常量

命名规范:
- 格式: {domain}.{component}.{action}
- 分隔符: 点号 (.)
- 常量命名: 全大写 + 下划线
"""


class CoreEvents:
    """事件名称常量"""

    # ========== Messenger: 消息应用 ==========
    # 正在输入状态变化（Requesting/Streaming 时为 True）
    MESSENGER_TYPING_CHANGED = "messenger.typing.changed"
    # 一条消息已持久化并投递
    MESSENGER_MESSAGE_DELIVERED = "messenger.message.delivered"
    # 回合因传输错误终止（面向用户的提示）
    MESSENGER_TURN_FAILED = "messenger.turn.failed"
    # 请求发送系统通知
    MESSENGER_NOTIFICATION_REQUESTED = "messenger.notification.requested"

    # ========== Player: 音乐播放器 ==========
    PLAYER_SKIP_TRACK = "player.control.skip"

    @classmethod
    def get_all_events(cls) -> tuple[str, ...]:
        """
        通过反射收集所有事件常量

        筛选条件：非下划线开头、值为小写字符串且包含点号。
        """
        return tuple(
            value
            for name, value in vars(cls).items()
            if not name.startswith("_") and isinstance(value, str) and value.islower() and ("." in value)
        )

    ALL_EVENTS = ()  # 模块末尾更新


CoreEvents.ALL_EVENTS = CoreEvents.get_all_events()
