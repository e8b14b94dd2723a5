"""
Health check endpoints for diagnosing service dependencies.
"""
import io
import time

import fitz  # PyMuPDF
from fastapi import APIRouter
from PIL import Image

from docsign.pdf import SignaturePlacement, SignatureMerger

router = APIRouter(
    prefix="/health",
    tags=["health"],
)


def _smoke_pdf() -> bytes:
    doc = fitz.open()
    doc.new_page(width=595, height=842)
    data = doc.tobytes()
    doc.close()
    return data


def _smoke_png() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (200, 80), (0, 0, 0, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


@router.get("/pdf")
async def health_check_pdf():
    """
    Verify PyMuPDF and Pillow can merge a signature end to end.
    Useful for diagnosing broken native builds in the container image.
    """
    start_time = time.time()
    result = {
        "pymupdf_version": fitz.VersionBind,
        "pillow_version": Image.__version__,
        "merge_ok": False,
        "duration_seconds": 0,
        "error": None,
    }

    try:
        placement = SignaturePlacement(
            id="health",
            page=1,
            relative_x=0.1,
            relative_y=0.1,
            relative_width=0.3,
            relative_height=0.1,
            image=_smoke_png(),
        )
        merged, report = SignatureMerger().merge(_smoke_pdf(), [placement])
        result["merge_ok"] = report.signatures_applied == 1 and merged.startswith(b"%PDF")
        if not result["merge_ok"]:
            result["error"] = f"Smoke merge skipped: {report.to_dict()['results']}"
    except Exception as e:
        result["error"] = f"Unexpected error: {e}"
    finally:
        result["duration_seconds"] = round(time.time() - start_time, 3)

    return {"status": "healthy" if result["merge_ok"] else "unhealthy", "pdf": result}
