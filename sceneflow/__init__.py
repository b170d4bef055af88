"""SceneFlow: transcript-to-diagram scene pipeline."""

__version__ = "0.1.0"
