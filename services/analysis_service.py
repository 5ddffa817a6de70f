"""
Service layer for the AI description of an uploaded image
"""
import logging

from google import genai
from google.genai import types

from config.settings import GEMINI_API_KEY, GEMINI_MODEL
from services.exceptions import AnalysisUnavailable

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = (
    "Analyze this image. The user has just compressed it to a target size of approximately "
    "{target_kb} KB. Provide a brief, one-paragraph visual description of the image. Then, "
    "provide a bulleted list of 3-4 points explaining the techniques that were likely used to "
    "achieve this compression (e.g., JPEG quality reduction, dimension scaling) and comment on "
    "the potential trade-offs (e.g., loss of fine detail, color banding). Make the tone "
    "informative and professional. Use simple hyphens or asterisks for bullet points."
)

UNSUPPORTED_FILE_TEXT = (
    "This file type ({mime_type}) cannot be analyzed by the AI or compressed by this tool.\n\n"
    "File Details:\n"
    "For non-image files, compression is not performed. For document compression, specific "
    "tools that understand the file structure are recommended."
)


class AnalysisService:
    def __init__(self, api_key=GEMINI_API_KEY, model=GEMINI_MODEL, client=None):
        self.api_key = api_key
        self.model = model
        self._client = client

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                logger.warning("GEMINI_API_KEY environment variable not set.")
                raise AnalysisUnavailable()
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def analyze(self, data, mime_type, target_kb):
        """Describe the original image and the likely compression trade-offs"""
        if not mime_type or not mime_type.startswith("image/"):
            return UNSUPPORTED_FILE_TEXT.format(mime_type=mime_type or "unknown")

        image_part = types.Part.from_bytes(data=data, mime_type=mime_type)
        prompt = ANALYSIS_PROMPT.format(target_kb=format_target(target_kb))

        client = self.client
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=[image_part, prompt],
            )
        except Exception as e:
            logger.error(f"Error calling Gemini API: {e}")
            raise AnalysisUnavailable() from e

        if not response.text:
            logger.error("Gemini API returned an empty response")
            raise AnalysisUnavailable()
        return response.text


def format_target(target_kb):
    value = float(target_kb)
    return str(int(value)) if value.is_integer() else f"{value:g}"
