"""
Handler for image compression commands
"""
from pyrogram.types import InlineKeyboardMarkup, InlineKeyboardButton
from config.settings import (
    ALLOWED_IMAGE_TYPES,
    DEFAULT_TARGET_KB,
    MAX_FILE_SIZE,
    OPERATION_TIMEOUT,
)
from services.analysis_service import AnalysisService
from services.compression_service import CompressionService
from services.exceptions import AnalysisUnavailable, CompressionCancelled, CompressionError
from services.image_service import ImageService, to_jpeg_quality
from utils.file_utils import get_user_folder, cleanup_user_data, compressed_filename, remove_file
from utils.format_utils import format_file_size, parse_target_kb
import asyncio
import threading
import os
import logging

logger = logging.getLogger(__name__)

QUICK_TARGETS_KB = [25, 50, 100, 200]
MAX_MESSAGE_LENGTH = 4000


class ImageHandler:
    def __init__(self, compression_service=None, analysis_service=None):
        self.image_service = ImageService()
        self.compression_service = compression_service or CompressionService(image_service=self.image_service)
        self.analysis_service = analysis_service or AnalysisService()
        self.user_settings = {}

    @staticmethod
    def _find_image(message):
        """Return (media, mime_type, file_name) for a photo or image document"""
        if message is None:
            return None, None, None
        if message.photo:
            return message.photo, "image/jpeg", f"photo_{message.id}.jpg"
        document = message.document
        if document and document.mime_type and document.mime_type.startswith("image/"):
            extension = document.mime_type.split("/")[-1].lower()
            if extension not in ALLOWED_IMAGE_TYPES:
                return None, None, None
            return document, document.mime_type, document.file_name or f"image_{message.id}.{extension}"
        return None, None, None

    async def handle_compress(self, client, message):
        """Handle the /compress command"""
        chat_id = message.chat.id
        try:
            source = message if (message.photo or message.document) else message.reply_to_message
            media, mime_type, file_name = self._find_image(source)
            if media is None:
                await message.reply_text(
                    "Please reply to an image with the /compress command, "
                    "or send an image with /compress as its caption."
                )
                return

            if media.file_size and media.file_size > MAX_FILE_SIZE:
                await message.reply_text(
                    f"This image is too large ({format_file_size(media.file_size)}). "
                    f"The limit is {format_file_size(MAX_FILE_SIZE)}."
                )
                return

            cleanup_user_data(chat_id, self.user_settings)
            await message.reply_text("Processing your image...")

            user_folder = get_user_folder(chat_id)
            downloaded_file = await client.download_media(
                source, file_name=os.path.join(user_folder, f"original_{os.path.basename(file_name)}")
            )

            try:
                with open(downloaded_file, 'rb') as f:
                    width, height, image_format = self.image_service.probe(f.read())
            except CompressionError as e:
                logger.error(f"Error reading image: {e}")
                await message.reply_text(f"{e} Please try again with a different image.")
                remove_file(downloaded_file)
                return

            original_size = os.path.getsize(downloaded_file)
            self.user_settings[chat_id] = {
                'command_state': 'enter_target_size',
                'original_path': downloaded_file,
                'user_folder': user_folder,
                'file_name': file_name,
                'mime_type': mime_type,
                'original_size': original_size,
            }

            image_details = (
                f"Image Details:\n\n"
                f"File Name: {file_name}\n"
                f"File Size: {format_file_size(original_size)}\n"
                f"Format: {image_format}\n"
                f"Dimensions: {width}x{height}px"
            )
            markup = InlineKeyboardMarkup([
                [InlineKeyboardButton(text=f"{kb} KB", callback_data=f"target_{kb}") for kb in QUICK_TARGETS_KB],
                [InlineKeyboardButton(text="Cancel", callback_data="cancel")]
            ])
            await message.reply_text(
                f"{image_details}\n\n"
                f"Please enter the desired file size in kilobytes (KB), or pick one below.\n"
                f"For example: {DEFAULT_TARGET_KB} for {DEFAULT_TARGET_KB}KB",
                reply_markup=markup
            )

        except Exception as e:
            logger.error(f"Error in handle_compress: {e}")
            await message.reply_text("An error occurred while processing your request.")
            cleanup_user_data(chat_id, self.user_settings)

    async def handle_callback(self, client, callback_query):
        """Handle inline keyboard callbacks"""
        chat_id = callback_query.message.chat.id
        try:
            data = callback_query.data

            if chat_id not in self.user_settings:
                await callback_query.answer("Session expired. Please start over.", show_alert=True)
                return

            if data == "cancel":
                cleanup_user_data(chat_id, self.user_settings)
                await callback_query.message.reply_text("Operation cancelled.")
                await callback_query.answer()
                return

            await callback_query.answer()
            if data.startswith("target_"):
                await self._run_compression(callback_query.message, chat_id, float(data[len("target_"):]))

        except Exception as e:
            logger.error(f"Error in handle_callback: {e}")
            await callback_query.answer("An error occurred.", show_alert=True)
            cleanup_user_data(chat_id, self.user_settings)

    async def handle_text(self, client, message):
        """Handle the target size typed by the user"""
        chat_id = message.chat.id
        try:
            if chat_id not in self.user_settings:
                return

            if self.user_settings[chat_id]['command_state'] != 'enter_target_size':
                return

            try:
                target_kb = parse_target_kb(message.text)
            except ValueError:
                await message.reply_text(
                    "Invalid file size. Please enter a positive number in kilobytes (KB).\n"
                    f"For example: {DEFAULT_TARGET_KB} for {DEFAULT_TARGET_KB}KB"
                )
                return

            await self._run_compression(message, chat_id, target_kb)

        except Exception as e:
            logger.error(f"Error in handle_text: {e}")
            await message.reply_text("An error occurred while processing your request.")
            cleanup_user_data(chat_id, self.user_settings)

    async def _run_compression(self, message, chat_id, target_kb):
        """Compress the stored image and describe it, then send both back"""
        session = self.user_settings[chat_id]
        if session['command_state'] == 'compressing':
            await message.reply_text("Your image is already being compressed. Please wait.")
            return

        cancel_event = threading.Event()
        session['command_state'] = 'compressing'
        session['cancel_event'] = cancel_event
        output_path = None

        try:
            await message.reply_text("Analyzing & compressing... ⏳")
            with open(session['original_path'], 'rb') as f:
                data = f.read()

            compression = asyncio.wait_for(
                asyncio.to_thread(
                    self.compression_service.compress,
                    data,
                    target_kb,
                    cancel_event=cancel_event,
                    allow_best_effort=True,
                ),
                OPERATION_TIMEOUT,
            )
            analysis = asyncio.to_thread(self.analysis_service.analyze, data, session['mime_type'], target_kb)
            result, analysis_text = await asyncio.gather(compression, analysis, return_exceptions=True)

            if isinstance(analysis_text, AnalysisUnavailable):
                analysis_text = str(analysis_text)
            elif isinstance(analysis_text, Exception):
                logger.error(f"Error analyzing image: {analysis_text}")
                analysis_text = str(AnalysisUnavailable())

            if isinstance(result, asyncio.TimeoutError):
                cancel_event.set()
                await message.reply_text("Compression took too long and was stopped. Please try a smaller image.")
                return
            if isinstance(result, CompressionCancelled) or self.user_settings.get(chat_id) is not session:
                await message.reply_text("Compression cancelled.")
                return
            if isinstance(result, CompressionError):
                await message.reply_text(f"Failed to process the file. {result}")
                return
            if isinstance(result, Exception):
                raise result

            download_name = compressed_filename(session['file_name'])
            output_path = os.path.join(session['user_folder'], download_name)
            with open(output_path, 'wb') as f:
                f.write(result.data)

            caption = (
                f"Compression Complete!\n\n"
                f"Original File: {format_file_size(session['original_size'])}\n"
                f"Compressed File: {format_file_size(result.size)} (Target: {target_kb:g} KB)\n"
                f"Quality: {to_jpeg_quality(result.quality)}%\n"
                f"Dimensions: {result.width}x{result.height}px"
            )
            if not result.within_budget:
                caption += (
                    "\n\n⚠️ Could not reach the target size. "
                    "This is the smallest version found; try a larger target size."
                )
            await message.reply_document(document=output_path, file_name=download_name, caption=caption)
            await message.reply_text(f"✨ AI Analysis\n\n{analysis_text[:MAX_MESSAGE_LENGTH]}")

        finally:
            remove_file(output_path)
            self._release_session(chat_id, session)

    def _release_session(self, chat_id, session):
        """Clean up after a run without touching a newer session for the same chat"""
        current = self.user_settings.get(chat_id)
        if current is session:
            cleanup_user_data(chat_id, self.user_settings)
        elif current is None or current.get('original_path') != session['original_path']:
            remove_file(session['original_path'])
