"""hookrelay - hook event pipeline for coding-agent hosts"""

__version__ = "0.1.0"
