"""
阿里云 OSS 文件上传服务

工单只保存上传结果的元数据（URL、文件名、大小、类型）
"""

import os
import uuid
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

import oss2

from ..config import OSSSettings
from ..exceptions import BusinessError, ErrorCode, ValidationError
from ..models.operation import UploadedFile
from ..utils.logger import get_logger

logger = get_logger(__name__)


class OSSUploadService:
    """阿里云 OSS 上传服务"""

    def __init__(self, settings: OSSSettings, bucket: Optional[oss2.Bucket] = None):
        """
        初始化 OSS 客户端

        Args:
            settings: OSS 配置
            bucket: 可注入的 Bucket（测试使用）
        """
        self.settings = settings
        if bucket is None:
            auth = oss2.Auth(
                settings.aliyun_oss_access_key_id, settings.aliyun_oss_access_key_secret
            )
            bucket = oss2.Bucket(
                auth, settings.aliyun_oss_endpoint, settings.aliyun_oss_bucket_name
            )
        self.bucket = bucket
        logger.info(
            f"OSS 服务初始化: bucket={settings.aliyun_oss_bucket_name}, "
            f"endpoint={settings.aliyun_oss_endpoint}"
        )

    def upload(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None,
        directory: Optional[str] = None,
    ) -> UploadedFile:
        """
        上传文件到 OSS

        Args:
            content: 文件二进制内容
            filename: 原始文件名
            content_type: MIME 类型
            directory: 目标目录提示，如 company/attachments

        Returns:
            UploadedFile 元数据

        Raises:
            ValidationError: 文件为空或超过大小限制
            BusinessError: OSS 写入失败
        """
        if not content:
            raise ValidationError("上传文件不能为空")

        max_size_bytes = self.settings.oss_max_file_size * 1024 * 1024
        if len(content) > max_size_bytes:
            raise ValidationError(
                f"文件大小 ({len(content)} 字节) 超过上限 ({max_size_bytes} 字节)"
            )

        object_key = self._build_object_key(filename, directory)
        content_type = content_type or "application/octet-stream"

        try:
            logger.info(f"上传文件到 OSS: {object_key} ({len(content)} 字节)")
            self.bucket.put_object(object_key, content, headers={"Content-Type": content_type})
        except oss2.exceptions.OssError as e:
            logger.error(f"上传文件失败 {object_key}: {e}")
            raise BusinessError("文件上传失败，请稍后重试", code=ErrorCode.SYSTEM_ERROR)

        return UploadedFile(
            file_url=self._build_url(object_key),
            file_name=filename,
            file_size=len(content),
            file_type=content_type,
            oss_object_key=object_key,
        )

    def delete_from_url(self, url: str) -> None:
        """根据完整 URL 删除文件"""
        object_key = self._extract_object_key(url)
        try:
            self.bucket.delete_object(object_key)
            logger.info(f"已删除 OSS 文件: {object_key}")
        except oss2.exceptions.OssError as e:
            logger.error(f"删除文件失败 {object_key}: {e}")
            raise BusinessError("文件删除失败，请稍后重试", code=ErrorCode.SYSTEM_ERROR)

    def check_file_exists(self, object_key: str) -> bool:
        """
        检查文件是否存在

        Args:
            object_key: OSS 对象键

        Returns:
            文件是否存在
        """
        try:
            exists = self.bucket.object_exists(object_key)
            logger.debug(f"文件存在性检查: {object_key} -> {exists}")
            return exists
        except oss2.exceptions.OssError as e:
            logger.error(f"检查文件存在性失败 {object_key}: {e}")
            return False

    def _build_object_key(self, filename: str, directory: Optional[str]) -> str:
        _, ext = os.path.splitext(filename)
        parts = [self.settings.oss_upload_dir.strip("/")]
        if directory:
            parts.append(directory.strip("/"))
        parts.append(datetime.now(timezone.utc).strftime("%Y/%m/%d"))
        parts.append(f"{uuid.uuid4().hex}{ext.lower()}")
        return "/".join(part for part in parts if part)

    def _build_url(self, object_key: str) -> str:
        endpoint = urlparse(self.settings.aliyun_oss_endpoint)
        scheme = endpoint.scheme or "https"
        host = endpoint.netloc or endpoint.path
        return f"{scheme}://{self.settings.aliyun_oss_bucket_name}.{host}/{object_key}"

    def _extract_object_key(self, url: str) -> str:
        """
        从完整 OSS URL 提取 object_key

        示例:
        https://my-bucket.oss-cn-hangzhou.aliyuncs.com/workorder/2025/01/01/a.pdf
        -> workorder/2025/01/01/a.pdf
        """
        parsed = urlparse(url)
        return parsed.path.lstrip("/")
