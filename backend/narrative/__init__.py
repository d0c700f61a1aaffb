from .controller import NarrativeController, UnknownChapter
from .recording import RecordingRenderer
from .types import CameraDirective, ChapterSpec, LegendItem, Renderer

__all__ = [
    "CameraDirective",
    "ChapterSpec",
    "LegendItem",
    "NarrativeController",
    "RecordingRenderer",
    "Renderer",
    "UnknownChapter",
]
