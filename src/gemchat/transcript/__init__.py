from gemchat.transcript.store import TranscriptStore

__all__ = ["TranscriptStore"]
