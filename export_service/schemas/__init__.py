from export_service.schemas.export import ErrorResponse, ExportRequest, ExportResponse, ScriptEntry

__all__ = [
    "ExportRequest",
    "ExportResponse",
    "ErrorResponse",
    "ScriptEntry",
]
