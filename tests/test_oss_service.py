import re

import oss2
import pytest

from ad_work_order.config import OSSSettings
from ad_work_order.exceptions import BusinessError, ValidationError
from ad_work_order.services.oss_service import OSSUploadService


class FakeBucket:
    def __init__(self, fail: bool = False):
        self.objects = {}
        self.fail = fail

    def put_object(self, key, data, headers=None):
        if self.fail:
            raise oss2.exceptions.OssError(500, {}, b"", {"Code": "InternalError"})
        self.objects[key] = (data, headers)

    def delete_object(self, key):
        self.objects.pop(key, None)

    def object_exists(self, key):
        return key in self.objects


def _settings(**overrides) -> OSSSettings:
    values = {
        "ALIYUN_OSS_ENDPOINT": "https://oss-cn-hangzhou.aliyuncs.com",
        "ALIYUN_OSS_BUCKET_NAME": "ad-bucket",
        "OSS_UPLOAD_DIR": "workorder",
        "OSS_MAX_FILE_SIZE": 1,
    }
    values.update(overrides)
    return OSSSettings(**values)


def test_upload_returns_file_metadata():
    bucket = FakeBucket()
    service = OSSUploadService(_settings(), bucket=bucket)

    uploaded = service.upload(b"%PDF-1.4", "营业执照.PDF", "application/pdf", "company/attachments")

    assert re.fullmatch(
        r"workorder/company/attachments/\d{4}/\d{2}/\d{2}/[0-9a-f]{32}\.pdf",
        uploaded.oss_object_key,
    )
    assert uploaded.file_url == (
        f"https://ad-bucket.oss-cn-hangzhou.aliyuncs.com/{uploaded.oss_object_key}"
    )
    assert uploaded.file_name == "营业执照.PDF"
    assert uploaded.file_size == 8
    assert uploaded.model_dump(by_alias=True)["fileType"] == "application/pdf"
    assert bucket.objects[uploaded.oss_object_key][1] == {"Content-Type": "application/pdf"}


def test_upload_rejects_empty_and_oversized_files():
    service = OSSUploadService(_settings(), bucket=FakeBucket())

    with pytest.raises(ValidationError):
        service.upload(b"", "empty.txt")
    with pytest.raises(ValidationError):
        service.upload(b"x" * (1024 * 1024 + 1), "big.bin")


def test_oss_errors_become_business_errors():
    service = OSSUploadService(_settings(), bucket=FakeBucket(fail=True))

    with pytest.raises(BusinessError) as exc_info:
        service.upload(b"data", "a.txt")

    assert exc_info.value.message == "文件上传失败，请稍后重试"


def test_delete_and_exists_use_object_key_from_url():
    bucket = FakeBucket()
    service = OSSUploadService(_settings(), bucket=bucket)
    uploaded = service.upload(b"data", "a.txt")

    assert service.check_file_exists(uploaded.oss_object_key)
    service.delete_from_url(uploaded.file_url)
    assert not service.check_file_exists(uploaded.oss_object_key)
