# handlers/help_handler.py
"""
Handler for help command
"""
from config.settings import DEFAULT_TARGET_KB, MAX_DIMENSION


class HelpHandler:
    @staticmethod
    async def handle_help(client, message):
        help_text = (
            "🤖 <b>Welcome to the Smart Compression Bot</b>\n\n"
            "<b>🎨 Image Operations:</b>\n"
            "• <b>/compress</b> - Compress an image to a target size in KB (reply to an image) 🗜️\n"
            f"  Example: reply to a photo with /compress, then send <code>{DEFAULT_TARGET_KB}</code>\n"
            f"  Images are converted to JPEG and scaled to at most {MAX_DIMENSION}px on the longer side.\n"
            "  You also get a short AI description of the image and the compression trade-offs ✨\n\n"
            "<b>ℹ️ General Commands:</b>\n"
            "• <b>/cancel</b> - Cancel the current operation ❌\n"
            "• <b>/help</b> - Display this help message ℹ️\n\n"
        )
        await message.reply_text(help_text, disable_web_page_preview=True)
