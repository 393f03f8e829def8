"""
API 模块 (API Module)
====================

FastAPI 后端：提供 /extract 接口，上传工作簿并返回 AggregateDocument JSON。
输入错误返回 400，块提取失败返回 502。
"""

import shutil
import tempfile
from pathlib import Path

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from quotex.errors import ChunkExtractionError, NoUsableSheetsError
from quotex.logger import get_logger
from quotex.pipeline import extract
from quotex.sheets.reader import read_workbook

logger = get_logger("quotex.api")

app = FastAPI(title="Quotation Extraction Backend")

ALLOWED_SUFFIXES = {".xlsx", ".xlsm", ".xls", ".csv"}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/extract")
async def extract_endpoint(
    file: UploadFile = File(...),
    allow_partial: bool = False,
):
    """
    提取接口：multipart 上传单个工作簿。
    返回 AggregateDocument 的 JSON 形式。
    """
    filename = Path(file.filename or "upload.xlsx").name
    suffix = Path(filename).suffix.lower()
    if suffix not in ALLOWED_SUFFIXES:
        raise HTTPException(status_code=400, detail=f"Unsupported file type: {suffix or filename}")

    upload_dir = Path(tempfile.mkdtemp(prefix="uploads_"))
    try:
        dest = upload_dir / filename
        dest.write_bytes(await file.read())
        try:
            sheets = read_workbook(str(dest))
        except Exception as e:
            logger.warning("Failed to read upload %s: %s", filename, e)
            raise HTTPException(status_code=400, detail=f"Unreadable workbook: {e}") from e

        try:
            document = await extract(sheets, fail_fast=not allow_partial)
        except NoUsableSheetsError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except ChunkExtractionError as e:
            raise HTTPException(
                status_code=502,
                detail={
                    "error": str(e),
                    "sheet": e.sheet_name,
                    "chunk_index": e.chunk_index,
                    "preview": e.preview,
                },
            ) from e
    finally:
        shutil.rmtree(upload_dir, ignore_errors=True)

    return JSONResponse(document.to_dict())
