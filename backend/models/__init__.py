from models.scheduling import ItemStateRecord, ReviewHistoryRecord, UTCDateTime

__all__ = [
    "ItemStateRecord",
    "ReviewHistoryRecord",
    "UTCDateTime",
]
