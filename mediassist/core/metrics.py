"""
Prometheus metrics
"""

from prometheus_client import Counter, Histogram

request_count = Counter("http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"])
request_duration = Histogram("http_request_duration_seconds", "HTTP request duration")
audio_processing_duration = Histogram("audio_processing_duration_seconds", "Upload-to-transcript duration")
transcription_total = Counter("transcriptions_total", "Transcription outcomes", ["status"])
note_generation_total = Counter("note_generations_total", "Note generation outcomes", ["outcome"])
fallback_total = Counter("provider_fallbacks_total", "Provider calls answered by a fallback", ["service"])
