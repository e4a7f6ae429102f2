"""reelledger — versioned generative-asset ledger for film production.

Tracks generated scene content (script, image, video, audio) as versions
grouped into lineages, paginates script text, and reconciles generated
audio against script pages.
"""

__version__ = "0.3.0"
