import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger

from chat_orchestrator.app_config import load_json_config, parse_app_config, resolve_runtime_env
from chat_orchestrator.bootstrap import bootstrap_runtime
from chat_orchestrator.chat_shell import ChatShell


async def main() -> None:
    load_dotenv()

    env = resolve_runtime_env()
    app = parse_app_config(load_json_config(), env)
    runtime = await bootstrap_runtime(app, env)

    if not runtime.client.has_identity:
        logger.error("CHAT_USER_ID environment variable is required.")
        await runtime.close()
        sys.exit(1)

    shell = ChatShell(runtime)

    print("chat-orchestrator (type 'exit' to quit, '/help' for commands)")
    print(f"Backend: {app.api_base_url}")
    print(f"User: {env.user_id}")
    ongoing = runtime.store.state.sessions
    if ongoing:
        print(f"Chats: {len(ongoing)} ongoing (use /session list, /session open <id>)")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    try:
        while True:
            try:
                user_input = await asyncio.to_thread(input, "you> ")
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()

            if trimmed in ("exit", "quit"):
                break

            if not trimmed:
                continue

            try:
                await shell.run(trimmed)
                print()
            except Exception as ex:
                logger.error(f"Unhandled error: {ex}")
    finally:
        shell.close()
        await runtime.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
