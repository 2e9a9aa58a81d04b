"""
Chart vision agent: best-effort analysis of cost/usage chart screenshots.
"""
import logging
from typing import Optional

from .reasoning import AgentLogCallback, ReasoningClient


logger = logging.getLogger(__name__)

VISION_PROMPT = "Analyze this cost/usage chart. Identify spikes or plateaus."
UNAVAILABLE = "Vision analysis unavailable."
NO_ANOMALIES = "No visual anomalies detected."

SUPPORTED_IMAGE_FORMATS = {
    'image/png': 'png',
    'image/jpeg': 'jpeg',
    'image/jpg': 'jpeg',
    'image/gif': 'gif',
    'image/webp': 'webp',
}


class ChartVisionAgent:
    """Turns a chart image into free text for the reasoning agent."""

    def __init__(self, client: Optional[ReasoningClient]):
        self.client = client

    def analyze_image(
        self,
        image_bytes: bytes,
        mime_type: str,
        log_callback: Optional[AgentLogCallback] = None,
    ) -> str:
        """Describe a chart image. Never raises; failures yield a placeholder."""
        if log_callback:
            log_callback('thought', "[Vision] Scanning visual telemetry...")

        image_format = SUPPORTED_IMAGE_FORMATS.get((mime_type or '').lower())
        if self.client is None or image_format is None or not image_bytes:
            logger.info(f"Skipping vision analysis (mime type: {mime_type})")
            return UNAVAILABLE

        try:
            text = self.client.describe_image(VISION_PROMPT, image_bytes, image_format)
        except Exception as e:
            logger.warning(f"Vision analysis failed: {e}")
            return UNAVAILABLE

        return text or NO_ANOMALIES
