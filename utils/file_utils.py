"""
Utility functions for file operations
"""
import os
import logging

from config.settings import COMPRESS_DIR, OUTPUT_SUFFIX

logger = logging.getLogger(__name__)


def get_user_folder(chat_id, base_path=COMPRESS_DIR):
    """Create and return user-specific folder in given base path"""
    user_folder = os.path.join(base_path, str(chat_id))
    os.makedirs(user_folder, exist_ok=True)
    return user_folder


def compressed_filename(original_name, suffix=OUTPUT_SUFFIX):
    """Derive the download name for a compressed image, e.g. photo.png -> photo-compressed.jpeg"""
    name = os.path.basename(original_name or "") or "image"
    stem, ext = os.path.splitext(name)
    if not stem:
        # dotfiles such as ".png" have no extension for splitext
        stem = name
    return f"{stem}{suffix}"


def remove_file(path):
    if path and os.path.exists(path):
        try:
            os.remove(path)
        except OSError as e:
            logger.error(f"Error removing {path}: {e}")


def cleanup_user_data(chat_id, user_settings):
    """Clean up user data and temporary files"""
    if chat_id not in user_settings:
        return False

    user_data = user_settings.pop(chat_id)
    remove_file(user_data.get('original_path'))

    # Delete user folder if empty
    user_folder = user_data.get('user_folder')
    if user_folder and os.path.isdir(user_folder) and not os.listdir(user_folder):
        os.rmdir(user_folder)

    cancel_event = user_data.get('cancel_event')
    if cancel_event is not None:
        cancel_event.set()
    return True
