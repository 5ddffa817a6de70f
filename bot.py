"""
Main bot file that initializes and runs the bot
"""
from pyrogram import Client, filters
from config.settings import API_ID, API_HASH, BOT_TOKEN
from handlers.help_handler import HelpHandler
from handlers.image_handler import ImageHandler
from handlers.cancel_handler import CancelHandler
from utils.logging_utils import setup_logging

from webserver import run_flask  # Import the Flask web server function
from threading import Thread  # For running Flask in a separate thread

logger = setup_logging()

COMMANDS = ["start", "help", "compress", "cancel"]


class Bot:
    def __init__(self):
        self.app = Client(
            "compress_bot",
            api_id=API_ID,
            api_hash=API_HASH,
            bot_token=BOT_TOKEN
        )
        self.image_handler = ImageHandler()
        self.cancel_handler = CancelHandler(user_settings=self.image_handler.user_settings)

        self.setup_handlers()

    def setup_handlers(self):
        # Help handler
        @self.app.on_message(filters.command(["help", "start"]))
        async def help_command(client, message):
            await HelpHandler.handle_help(client, message)

        # Compression handlers; the command filter also matches image captions
        @self.app.on_message(filters.command("compress"))
        async def compress_command(client, message):
            await self.image_handler.handle_compress(client, message)

        @self.app.on_callback_query()
        async def callback(client, callback_query):
            await self.image_handler.handle_callback(client, callback_query)

        @self.app.on_message(filters.text & ~filters.command(COMMANDS))
        async def handle_text(client, message):
            await self.image_handler.handle_text(client, message)

        # Cancel handler
        @self.app.on_message(filters.command("cancel"))
        async def cancel_command(client, message):
            await self.cancel_handler.handle_cancel(client, message)

    def run(self):
        logger.info("Bot is starting...")
        # Run Flask in a separate thread
        flask_thread = Thread(target=run_flask, daemon=True)
        flask_thread.start()

        # Run the bot
        self.app.run()


def main():
    bot = Bot()
    bot.run()


if __name__ == "__main__":
    main()
