"""Export boundary: QR images, attendance documents and download filenames."""
from rollcall.export.documents import EXPORT_FORMATS, ExportFormat, attendance_rows
from rollcall.export.filenames import export_filename, safe_name
from rollcall.export.qr import qr_data_url, render_qr_png

__all__ = [
    "EXPORT_FORMATS",
    "ExportFormat",
    "attendance_rows",
    "export_filename",
    "safe_name",
    "qr_data_url",
    "render_qr_png",
]
