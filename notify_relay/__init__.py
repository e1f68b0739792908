"""Fan-out relay: notifications from direct publish, RabbitMQ and demo playback to SSE viewers."""

__version__ = "1.0.0"
