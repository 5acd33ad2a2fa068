# noqa
from src.services.call_navigator import CallNavigator
from src.services.call_session_service import CallSessionService
from src.services.export_service import ExportService
from src.services.metadata_replay import MetadataReplayer

__all__ = ["CallNavigator", "CallSessionService", "ExportService", "MetadataReplayer"]
