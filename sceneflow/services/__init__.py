"""Reusable services."""

from sceneflow.services.scene_cache import SceneCache, scene_fingerprint

__all__ = ["SceneCache", "scene_fingerprint"]
