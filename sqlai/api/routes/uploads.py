"""
Upload Routes

Listing and dropping tables created from uploaded files.
"""

import logging

from fastapi import APIRouter

from sqlai.api.models import MessageResponse, UploadsResponse
from sqlai.uploads import UploadedTables

logger = logging.getLogger(__name__)

router = APIRouter()


def _uploads() -> UploadedTables:
    from sqlai.api.main import get_uploads

    return get_uploads()


@router.get("/uploads", response_model=UploadsResponse)
async def list_uploads() -> UploadsResponse:
    tables = await _uploads().list_uploaded_tables()
    return UploadsResponse(tables=tables, count=len(tables))


@router.delete("/uploads/{table_name}", response_model=MessageResponse)
async def delete_upload(table_name: str) -> MessageResponse:
    """
    Drop an uploaded table.

    Names without the ``upload_`` prefix are refused with 400.
    """
    await _uploads().drop_uploaded_table(table_name)
    return MessageResponse(message=f"Table '{table_name}' deleted")
