"""
文件上传路由
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ..deps import ServiceContainer, get_container, get_session, respond
from ..schemas.response import Envelope
from ...exceptions import BusinessError
from ...models.operation import SessionUser
from ...services.session_service import require_session
from ...utils.logger import get_logger
from ...workflows.facade import failure, success

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["upload"])


@router.post("/upload", response_model=Envelope)
async def upload_file(
    file: UploadFile = File(...),
    directory: Optional[str] = Form(None, description="目标目录，如 company/attachments"),
    container: ServiceContainer = Depends(get_container),
    session: Optional[SessionUser] = Depends(get_session),
):
    """
    上传附件到 OSS

    返回 {fileUrl, fileName, fileSize, fileType}，工单只保存这些元数据
    """
    try:
        user = require_session(session)
        content = await file.read()
        uploaded = container.oss.upload(
            content, file.filename or "file", file.content_type, directory
        )
    except BusinessError as e:
        return respond(failure(e))

    logger.info(f"文件上传完成: user={user.user_id}, key={uploaded.oss_object_key}")
    return respond(success(uploaded.model_dump(by_alias=True), "上传成功"))
