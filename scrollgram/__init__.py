"""
Scrolling spectrogram renderer.

Consumes byte magnitude frames, maps them onto a fixed-width scrolling raster
(axis mapping, shaping, palette) and composites labeled exports. Audio
capture and decoding stay with the caller; see ``scrollgram.sources`` for the
file-playback adapter.
"""
