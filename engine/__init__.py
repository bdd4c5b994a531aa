"""Engine module: image pipeline, lookahead buffer and deck controller."""

from .deck_engine import DeckEngine, stable_color
from .image_pipeline import ImagePipeline
from .image_queue import LookaheadQueue, QueueState

__all__ = ['DeckEngine', 'ImagePipeline', 'LookaheadQueue', 'QueueState', 'stable_color']
