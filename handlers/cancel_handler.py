"""
Handler for cancel command
"""
import logging

from utils.file_utils import cleanup_user_data

logger = logging.getLogger(__name__)


class CancelHandler:
    def __init__(self, user_settings):
        self.user_settings = user_settings

    async def handle_cancel(self, client, message):
        try:
            chat_id = message.chat.id

            # Also stops a compression that is still running for this chat
            if cleanup_user_data(chat_id, self.user_settings):
                await message.reply_text("✅ Current operation has been cancelled. You can start a new operation.")
            else:
                await message.reply_text("No active operation to cancel.")

        except Exception as e:
            logger.error(f"Error in handle_cancel: {e}")
            await message.reply_text("An error occurred while trying to cancel the operation.")
