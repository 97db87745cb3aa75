"""SceneStudio - scene-ordered video projects with AI scene generation and preview rendering."""

__version__ = "0.1.0"
