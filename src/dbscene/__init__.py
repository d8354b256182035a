"""dbscene: capture DS100 En-Scene positions as QLab cues"""

__version__ = "0.1.0"
