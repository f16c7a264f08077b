"""TTS Service - streamed narration audio from a speech backend.

Talks to an OpenAI-compatible ``/audio/speech`` endpoint that streams WAV.
The whole stream is drained before the audio is considered complete (a
partial read yields a truncated clip), then the file is stored in object
storage and referenced by public URL.
"""

import logging
import time
import uuid

import httpx

from models.media import SpeechRequest
from services.ai_gateway import error_for_response
from services.object_storage import ObjectStorage
from utils.errors import SceneMediaFailed, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_SPEECH_URL = "https://api.openai.com/v1"
DEFAULT_SPEECH_MODEL = "gpt-4o-mini-tts"
DEFAULT_VOICE = "alloy"
AUDIO_BUCKET_PREFIX = "audio"

# Streaming WAV encoders write these when the final length is unknown
_UNKNOWN_RIFF_SIZES = {0, 0xFFFFFFFF}


class TTSServiceError(SceneMediaFailed):
    """Error from TTS service."""

    pass


class TTSService:
    """HTTP client for streamed narration audio."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_SPEECH_URL,
        storage: ObjectStorage | None = None,
        model: str = DEFAULT_SPEECH_MODEL,
        voice: str = DEFAULT_VOICE,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize TTS service.

        Args:
            api_key: Bearer token for the speech backend
            base_url: Speech API base URL (``/audio/speech`` is appended)
            storage: Object storage for finished audio files
            model: Speech model name
            voice: Default voice selector
            timeout: Per-request timeout in seconds
            client: Optional preconfigured httpx client (used by tests)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.storage = storage
        self.model = model
        self.voice = voice
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(timeout=timeout)

    @staticmethod
    def detect_audio_format(audio_bytes: bytes) -> str:
        """Detect audio format from magic bytes."""
        if len(audio_bytes) >= 12 and audio_bytes[:4] == b"RIFF" and audio_bytes[8:12] == b"WAVE":
            return "wav"
        if audio_bytes[:3] == b"ID3" or (
            len(audio_bytes) >= 2
            and audio_bytes[0] == 0xFF
            and (audio_bytes[1] & 0xE0) == 0xE0
        ):
            return "mp3"
        if audio_bytes[:4] == b"OggS":
            return "ogg"
        return "bin"

    @staticmethod
    def media_type_for_audio_format(audio_format: str) -> str:
        """Map internal audio format to HTTP content-type."""
        return {
            "wav": "audio/wav",
            "mp3": "audio/mpeg",
            "ogg": "audio/ogg",
        }.get(audio_format, "application/octet-stream")

    @staticmethod
    def check_wav_complete(audio_bytes: bytes) -> None:
        """Raise if a WAV payload is shorter than its RIFF header declares.

        Raises:
            TTSServiceError: If the payload is truncated
        """
        declared = int.from_bytes(audio_bytes[4:8], "little")
        if declared in _UNKNOWN_RIFF_SIZES:
            return
        expected = declared + 8
        if len(audio_bytes) < expected:
            raise TTSServiceError(
                f"Truncated WAV audio: received {len(audio_bytes)} of {expected} bytes"
            )

    async def synthesize(self, request: SpeechRequest) -> bytes:
        """Stream speech for the given text and return the complete audio.

        Args:
            request: Narration text and voice selector

        Returns:
            Complete audio file bytes (WAV)

        Raises:
            TTSServiceError: If the text is empty or the audio is unusable
            RateLimited, QuotaExceeded, UpstreamError: On non-2xx or transport failure
        """
        text = " ".join(request.text.split())
        if not text:
            raise TTSServiceError("Narration text is empty")

        payload = {
            "model": self.model,
            "input": text,
            "voice": request.voice or self.voice,
            "response_format": "wav",
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        start_time = time.time()
        chunks: list[bytes] = []
        try:
            async with self.client.stream(
                "POST",
                f"{self.base_url}/audio/speech",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise error_for_response(response, "Speech generation")
                async for chunk in response.aiter_bytes():
                    chunks.append(chunk)
        except httpx.TimeoutException as e:
            logger.warning(f"Speech generation timed out after {self.timeout}s")
            raise UpstreamError(f"Speech generation timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.warning(f"Speech generation stream failed: {e}")
            raise UpstreamError(f"Speech generation stream failed: {e}") from e

        audio = b"".join(chunks)
        audio_format = self.detect_audio_format(audio)
        if audio_format != "wav":
            raise TTSServiceError(f"Expected WAV audio, got {audio_format} ({len(audio)} bytes)")
        self.check_wav_complete(audio)

        generation_time_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Generated {len(audio)} bytes of narration in {generation_time_ms}ms "
            f"({len(chunks)} chunks, {len(text.split())} words)"
        )
        return audio

    async def generate_scene_audio(
        self,
        narration: str,
        key_prefix: str,
        duration: int | None = None,
        voice: str | None = None,
    ) -> str:
        """Generate, store and return the public URL of a scene's narration.

        Args:
            narration: Narration text for the scene
            key_prefix: Storage folder for this run (e.g. the project id)
            duration: Scene duration in seconds, used for pacing logs
            voice: Voice selector (defaults to the configured voice)

        Returns:
            Public URL of the stored WAV file
        """
        if self.storage is None:
            raise TTSServiceError("No object storage configured for narration audio")

        request = SpeechRequest(text=narration, voice=voice or self.voice, duration=duration)
        if duration:
            words_per_second = len(narration.split()) / duration
            logger.debug(f"Narration pacing: {words_per_second:.2f} words/s over {duration}s")

        audio = await self.synthesize(request)
        key = f"{AUDIO_BUCKET_PREFIX}/{key_prefix}/audio-{uuid.uuid4().hex[:12]}.wav"
        return await self.storage.upload(key, audio, self.media_type_for_audio_format("wav"))

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
