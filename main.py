import argparse
import asyncio
import os
import signal
import sys

from hoshino.domains.messenger import (
    EventBusNotifier,
    EventBusPlaybackController,
    MessengerError,
    SessionOrchestrator,
    TurnContextBuilder,
)
from hoshino.modules.config import ConfigService
from hoshino.modules.context import ContextService
from hoshino.modules.events import CoreEvents, EventBus, register_core_events
from hoshino.modules.events.payloads import (
    MessageDeliveredPayload,
    NotificationRequestedPayload,
    SkipTrackPayload,
    TurnFailedPayload,
    TypingChangedPayload,
)
from hoshino.modules.llm import OpenAIClient, StreamReceiver
from hoshino.modules.logging import configure_from_config, get_logger

logger = get_logger("Main")

# 获取 main.py 文件所在的目录 (项目根目录)
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))

HELP_TEXT = "命令: /regen 重新生成  /cancel 取消当前回复  /quit 退出"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Hoshino Messenger 控制台")
    parser.add_argument("--debug", action="store_true", help="启用 DEBUG 级别日志输出")
    parser.add_argument(
        "--filter",
        nargs="+",
        metavar="MODULE_NAME",
        help="仅显示指定模块的 INFO/DEBUG 级别日志 (WARNING 及以上级别总是显示)",
    )
    parser.add_argument("--conversation", default="default", help="会话ID")
    return parser.parse_args()


def subscribe_console(event_bus: EventBus, title: str) -> None:
    """控制台前端：把投递、通知、切歌等事件打印出来"""

    def on_delivered(event_name: str, data: MessageDeliveredPayload, source: str):
        line = f"{title}: {data.content}" if data.msg_type == "text" else f"{title}: [{data.msg_type}] {data.content}"
        print(line)
        if data.translation:
            print(f"    ({data.translation})")

    def on_typing(event_name: str, data: TypingChangedPayload, source: str):
        if data.typing:
            print(f"({title} 正在输入...)")

    def on_failed(event_name: str, data: TurnFailedPayload, source: str):
        print(f"[发送失败] {data.error}")

    def on_notification(event_name: str, data: NotificationRequestedPayload, source: str):
        logger.debug(f"通知 [{data.tag}] {data.title}: {data.body} (静默: {data.silent})")

    def on_skip(event_name: str, data: SkipTrackPayload, source: str):
        print("♪ 切到下一首")

    event_bus.on(CoreEvents.MESSENGER_MESSAGE_DELIVERED, on_delivered, MessageDeliveredPayload)
    event_bus.on(CoreEvents.MESSENGER_TYPING_CHANGED, on_typing, TypingChangedPayload)
    event_bus.on(CoreEvents.MESSENGER_TURN_FAILED, on_failed, TurnFailedPayload)
    event_bus.on(CoreEvents.MESSENGER_NOTIFICATION_REQUESTED, on_notification, NotificationRequestedPayload)
    event_bus.on(CoreEvents.PLAYER_SKIP_TRACK, on_skip, SkipTrackPayload)


async def run_turn(orchestrator: SessionOrchestrator, conversation_id: str, text: str | None) -> None:
    try:
        if text is None:
            await orchestrator.regenerate(conversation_id)
        else:
            await orchestrator.submit(conversation_id, text)
    except MessengerError as e:
        print(f"[提示] {e}")
    except Exception as e:
        logger.error(f"回合执行出错: {e}", exc_info=True)


async def input_loop(orchestrator: SessionOrchestrator, conversation_id: str, stop_event: asyncio.Event) -> None:
    """读取控制台输入，每条输入作为一个回合在后台执行"""
    turns: set[asyncio.Task] = set()
    print(HELP_TEXT)

    while not stop_event.is_set():
        try:
            text = await asyncio.to_thread(input, "> ")
        except EOFError:
            break
        text = text.strip()
        if not text:
            continue

        if text == "/quit":
            break
        if text == "/cancel":
            if not orchestrator.cancel(conversation_id):
                print("[提示] 当前没有进行中的回复")
            continue

        task = asyncio.create_task(run_turn(orchestrator, conversation_id, None if text == "/regen" else text))
        turns.add(task)
        task.add_done_callback(turns.discard)

    stop_event.set()


async def main():
    """应用程序主入口点。"""
    args = parse_args()

    # --- 初始化配置 ---
    config_service = ConfigService(base_dir=_BASE_DIR)
    try:
        main_config, main_cfg_copied = config_service.initialize()
    except (IOError, FileNotFoundError) as e:
        logger.critical(f"配置文件初始化失败: {e}")
        logger.critical("请检查错误信息并确保配置文件或模板存在且可访问。")
        sys.exit(1)
    except Exception as e:
        logger.critical(f"加载配置时发生未知严重错误: {e}", exc_info=True)
        sys.exit(1)

    # --- 配置日志 ---
    logging_config = dict(main_config.get("logging", {}))
    if args.debug:
        logging_config["console_level"] = "DEBUG"
    if args.filter:
        logging_config["filter"] = args.filter
    configure_from_config(logging_config)

    if main_cfg_copied:
        logger.warning("!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!")
        logger.warning("!! 主配置文件 config.toml 已根据模板创建。                 !!")
        logger.warning("!! 请填写 [llm] 中的 API 密钥等配置后重新运行程序。        !!")
        logger.warning("!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!!")
        sys.exit(0)

    app_config = config_service.app_config
    persona = app_config.persona
    logger.info(f"启动 Hoshino Messenger (角色: {persona.name}, 模型: {app_config.llm.model})")

    # --- 初始化服务 ---
    event_bus = EventBus()
    register_core_events()

    context_service = ContextService()
    await context_service.initialize()

    client = OpenAIClient(app_config.llm)
    receiver = StreamReceiver(client)
    builder = TurnContextBuilder(
        context_service,
        persona,
        app_config.messenger,
        world_book=app_config.world_book,
        stickers=app_config.stickers,
    )
    orchestrator = SessionOrchestrator(
        context_service,
        receiver,
        builder,
        EventBusNotifier(event_bus),
        EventBusPlaybackController(event_bus),
        event_bus=event_bus,
        messenger_config=app_config.messenger,
        notification_config=app_config.notification,
        title=persona.name,
    )
    subscribe_console(event_bus, persona.name)

    # --- 保持运行并处理退出信号 ---
    stop_event = asyncio.Event()

    def signal_handler(signum=None, frame=None):
        logger.info("收到退出信号，开始关闭...")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except (NotImplementedError, ValueError):
            # Windows 不支持 add_signal_handler
            pass

    input_task = asyncio.create_task(input_loop(orchestrator, args.conversation, stop_event))
    await stop_event.wait()
    input_task.cancel()

    # --- 执行清理 ---
    logger.info("正在关闭...")
    await orchestrator.shutdown(timeout=2.0)
    await client.cleanup()
    await event_bus.cleanup(timeout=2.0)
    await context_service.cleanup()
    logger.info("Hoshino Messenger 已关闭。")
    # input() 所在线程无法被取消，直接退出
    os._exit(0)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("检测到 KeyboardInterrupt，强制退出。")
