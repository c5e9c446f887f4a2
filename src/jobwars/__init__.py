"""JobWars: a two-player card battle between professions."""

__version__ = "0.1.0"
