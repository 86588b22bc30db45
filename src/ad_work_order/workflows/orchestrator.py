"""
工单编排器

负责工单的创建、修改、审批与第三方结果回写。每个操作在单一事务内完成：
工单、原始数据、业务数据、企业信息快照与审计记录要么全部提交，要么全部回滚。
第三方调用发生在事务内，其结果决定事务内的最终写入。
"""

import asyncio
import json
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Generator, Optional

from pydantic import BaseModel
from sqlalchemy import or_, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ..db.base import utcnow
from ..db.engine import session_scope
from ..db.tables import BusinessDataRecord, RawDataRecord, WorkOrderRecord
from ..exceptions import (
    AuthorizationError,
    BusinessError,
    ErrorCode,
    FieldIssue,
    ResourceNotFoundError,
    StatusTransitionError,
    TransactionError,
    ValidationError,
)
from ..models.enums import AuditAction, SyncStatus, WorkOrderStatus
from ..models.operation import GatewayResult, SessionUser
from ..services.audit_service import AuditService, dump_json
from ..services.company_info_service import build_company_snapshot, company_snapshot_to_dict
from ..services.gateway_service import DEFAULT_FAILURE_MESSAGE, format_sync_error
from ..services.validation_service import ValidationService
from ..utils.logger import LoggerAdapter, get_logger, task_logger
from ..utils.task_number import generate_task_number, generate_trace_id
from .handlers import SubtypeHandler, get_handler
from .state import (
    CANCELABLE_STATUSES,
    EDITABLE_STATUSES,
    ensure_status_in,
    ensure_transition,
)

logger = get_logger(__name__)

S = WorkOrderStatus

CALLBACK_ACTOR = "THIRD_PARTY"

# 在加锁读取之后、任何写入之前执行的检查，如审核权限
OrderGuard = Callable[[WorkOrderRecord], None]

CALLBACK_STATUS_MAP = {
    "SUCCESS": S.COMPLETED,
    "COMPLETED": S.COMPLETED,
    "APPROVED": S.COMPLETED,
    "0": S.COMPLETED,
    "FAILED": S.FAILED,
    "FAIL": S.FAILED,
    "REJECTED": S.FAILED,
    "1": S.FAILED,
}


class WorkOrderOrchestrator:
    """工单编排器"""

    def __init__(
        self,
        validator: ValidationService,
        gateway,
        session_factory: sessionmaker,
        audit: Optional[AuditService] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        初始化编排器

        Args:
            validator: 校验服务
            gateway: 第三方网关（HttpGatewayAdapter / MockGatewayAdapter）
            session_factory: SQLAlchemy 会话工厂
            audit: 审计服务
            clock: 时间来源
        """
        self.validator = validator
        self.gateway = gateway
        self.session_factory = session_factory
        self.audit = audit or AuditService()
        self.clock = clock

    # ============ 事务 ============

    @contextmanager
    def _transaction(self, action: str) -> Generator[Session, None, None]:
        """业务异常原样抛出，并发冲突转状态错误，其余异常回滚后转为事务错误"""
        try:
            with session_scope(self.session_factory) as session:
                yield session
        except BusinessError:
            raise
        except StaleDataError as e:
            logger.warning(f"{action}并发冲突: {e}")
            raise StatusTransitionError("工单已被其他操作修改，请刷新后重试") from e
        except Exception as e:
            logger.error(f"{action}事务失败，已回滚: {e}", exc_info=True)
            raise TransactionError() from e

    def _load_for_update(self, session: Session, key: str) -> WorkOrderRecord:
        """按 id / 工单编号 / 第三方任务 ID 加锁读取工单"""
        stmt = (
            select(WorkOrderRecord)
            .where(
                or_(
                    WorkOrderRecord.id == key,
                    WorkOrderRecord.task_number == key,
                    WorkOrderRecord.task_id == key,
                ),
                WorkOrderRecord.is_deleted.is_(False),
            )
            .order_by(WorkOrderRecord.created_at.desc())
            .with_for_update()
        )
        order = session.execute(stmt).scalars().first()
        if order is None:
            raise ResourceNotFoundError("工单不存在或已删除")
        return order

    async def _validate(
        self, handler: SubtypeHandler, payload: Any, permissive: Optional[bool]
    ) -> BaseModel:
        # 字典校验可能同步请求远程字典，放到线程中执行
        return await asyncio.to_thread(handler.validate, self.validator, payload, permissive)

    # ============ 写入辅助 ============

    def _write_raw_data(
        self,
        session: Session,
        order: WorkOrderRecord,
        request_body: Dict[str, Any],
        trace_id: str,
        now: datetime,
    ) -> RawDataRecord:
        raw = RawDataRecord(
            work_order_id=order.id,
            request_data=dump_json({**request_body, "traceId": trace_id}),
            sync_status=SyncStatus.PENDING.value,
            sync_attempts=0,
            created_at=now,
            updated_at=now,
        )
        session.add(raw)
        session.flush()
        order.raw_data_id = raw.id
        return raw

    def _write_business_data(
        self,
        session: Session,
        order: WorkOrderRecord,
        handler: SubtypeHandler,
        model: BaseModel,
        now: datetime,
    ) -> BusinessDataRecord:
        """业务数据 upsert：每个工单一行"""
        fields = handler.build_business_data(model)
        business = session.execute(
            select(BusinessDataRecord).where(BusinessDataRecord.work_order_id == order.id)
        ).scalars().first()
        if business is None:
            business = BusinessDataRecord(work_order_id=order.id, created_at=now)
            session.add(business)
        for key, value in fields.items():
            setattr(business, key, value)
        business.application_status = S.PENDING.value
        business.failure_reason = None
        business.updated_at = now
        session.flush()
        order.business_data_id = business.id
        return business

    def _apply_gateway_result(
        self,
        order: WorkOrderRecord,
        raw: RawDataRecord,
        business: Optional[BusinessDataRecord],
        result: GatewayResult,
        now: datetime,
        log: LoggerAdapter,
    ) -> None:
        """按第三方结果回写工单、原始数据与业务数据"""
        if isinstance(result.raw_response, str):
            raw.response_data = result.raw_response
        else:
            raw.response_data = dump_json(result.raw_response)
        raw.sync_attempts = (raw.sync_attempts or 0) + 1
        raw.last_sync_time = now
        raw.updated_at = now

        if result.succeeded:
            ensure_transition(order.status, S.PROCESSING, "提交第三方")
            order.status = S.PROCESSING.value
            if result.external_task_id:
                order.task_id = result.external_task_id
            else:
                log.warning(f"[{order.task_number}] 第三方成功响应缺少 taskId，保留工单编号")
            raw.sync_status = SyncStatus.SUCCESS.value
            raw.sync_error = None
            if business is not None:
                business.application_status = S.PROCESSING.value
                business.failure_reason = None
                business.updated_at = now
            log.info(f"[{order.task_number}] 第三方受理成功: taskId={order.task_id}")
        else:
            ensure_transition(order.status, S.FAILED, "标记失败")
            error = result.error_message or DEFAULT_FAILURE_MESSAGE
            order.status = S.FAILED.value
            raw.sync_status = SyncStatus.FAILED.value
            raw.sync_error = format_sync_error(result)
            if business is not None:
                business.application_status = S.FAILED.value
                business.failure_reason = error
                business.updated_at = now
            log.warning(f"[{order.task_number}] 第三方调用失败: {raw.sync_error}")
        order.updated_at = now

    def _check_owner(self, order: WorkOrderRecord, user: SessionUser, action: str) -> None:
        if order.user_id != user.user_id:
            raise AuthorizationError.forbidden(f"无权{action}此工单")

    @staticmethod
    def _snapshot(order: WorkOrderRecord, **extra) -> Dict[str, Any]:
        data = {
            "taskNumber": order.task_number,
            "taskId": order.task_id,
            "status": order.status,
        }
        data.update(extra)
        return data

    # ============ 提交 ============

    async def submit(
        self,
        subtype: str,
        payload: Any,
        user: SessionUser,
        permissive: Optional[bool] = None,
    ) -> WorkOrderRecord:
        """
        创建工单

        校验 → 生成编号 → 事务内写入工单/原始数据/业务数据/企业信息 →
        （创建即提交的子类型）调用第三方 → 审计 → 提交

        Args:
            subtype: 工单子类型
            payload: 入参
            user: 当前用户
            permissive: 是否宽松校验

        Returns:
            已提交的工单记录

        Raises:
            ValidationError / AuthorizationError / ResourceNotFoundError / TransactionError
        """
        handler = get_handler(subtype)
        model = await self._validate(handler, payload, permissive)

        task_number = generate_task_number(handler.work_order_type.value, handler.subtype.value)
        trace_id = generate_trace_id()
        log = task_logger(logger, task_number, trace_id)
        log.info(f"[{task_number}] 开始创建{handler.title}工单: user={user.user_id}")

        with self._transaction("创建工单") as session:
            now = self.clock()
            company = build_company_snapshot(
                session, getattr(model, "company_info", None), user.user_id
            )
            metadata = handler.build_metadata(model, user)

            order = WorkOrderRecord(
                task_number=task_number,
                task_id=task_number,
                work_order_type=handler.work_order_type.value,
                work_order_subtype=handler.subtype.value,
                status=S.PENDING.value,
                user_id=user.user_id,
                metadata_json=dump_json(metadata),
                is_deleted=False,
                created_at=now,
                updated_at=now,
            )
            session.add(order)
            session.flush()

            request_body = handler.build_gateway_request(
                model, task_number, company_info=company_snapshot_to_dict(company)
            )
            raw = self._write_raw_data(session, order, request_body, trace_id, now)
            business = self._write_business_data(session, order, handler, model, now)

            if company is not None:
                company.work_order_id = order.id
                session.add(company)

            if handler.submit_on_create:
                result = await self.gateway.call(
                    handler.endpoint_for(is_update=False), request_body, trace_id
                )
                self._apply_gateway_result(order, raw, business, result, now, log)

            self.audit.record(
                session,
                order.id,
                AuditAction.CREATE,
                user.user_id,
                self._snapshot(
                    order,
                    accountName=business.account_name,
                    hasCompanyInfo=company is not None,
                    mediaPlatform=business.media_platform,
                ),
                now=now,
            )
            session.flush()

        log.info(f"[{task_number}] 工单创建完成: status={order.status}")
        return order

    async def update(
        self,
        task_id: str,
        payload: Any,
        user: SessionUser,
        permissive: Optional[bool] = None,
        expected_subtype: Optional[str] = None,
    ) -> WorkOrderRecord:
        """
        修改工单（全量重新提交）

        仅待处理/待修改/失败状态可修改。追加新的原始数据行，原地更新业务数据，
        状态重置为待处理；创建即提交的子类型重新调用第三方。

        Args:
            task_id: 工单 id / 工单编号 / 第三方任务 ID
            payload: 入参
            user: 当前用户
            permissive: 是否宽松校验
            expected_subtype: 调用方期望的子类型（平台路由校验）

        Returns:
            工单记录
        """
        trace_id = generate_trace_id()

        with self._transaction("修改工单") as session:
            now = self.clock()
            order = self._load_for_update(session, task_id)
            log = task_logger(logger, order.task_number, trace_id, order.id)

            if expected_subtype and order.work_order_subtype != str(expected_subtype):
                raise ValidationError(
                    "工单类型与请求不匹配", code=ErrorCode.INVALID_PARAMETER
                )
            self._check_owner(order, user, "修改")
            ensure_status_in(order.status, EDITABLE_STATUSES, "修改")

            handler = get_handler(order.work_order_subtype)
            model = await self._validate(handler, payload, permissive)
            previous = self._snapshot(order, rawDataId=order.raw_data_id)
            log.info(f"[{order.task_number}] 开始修改工单: from={order.status}")

            company = build_company_snapshot(
                session, getattr(model, "company_info", None), user.user_id
            )
            if company is not None:
                # 先删除旧快照，避免唯一约束冲突
                if order.company_info is not None:
                    order.company_info = None
                    session.flush()
                order.company_info = company
            company_info = company_snapshot_to_dict(order.company_info)

            if order.status != S.PENDING.value:
                ensure_transition(order.status, S.PENDING, "重新提交")
            order.status = S.PENDING.value
            order.updated_at = now

            metadata = handler.build_metadata(model, user)
            metadata["updatedBy"] = user.user_id
            order.metadata_json = dump_json(metadata)

            external_task_id = order.task_id if order.task_id != order.task_number else None
            request_body = handler.build_gateway_request(
                model,
                order.task_number,
                external_task_id=external_task_id,
                company_info=company_info,
            )
            raw = self._write_raw_data(session, order, request_body, trace_id, now)
            business = self._write_business_data(session, order, handler, model, now)

            if handler.submit_on_create:
                result = await self.gateway.call(
                    handler.endpoint_for(is_update=external_task_id is not None),
                    request_body,
                    trace_id,
                )
                self._apply_gateway_result(order, raw, business, result, now, log)

            self.audit.record(
                session,
                order.id,
                AuditAction.UPDATE,
                user.user_id,
                self._snapshot(order, rawDataId=raw.id, accountName=business.account_name),
                previous=previous,
                now=now,
            )
            session.flush()

        log.info(f"[{order.task_number}] 工单修改完成: status={order.status}")
        return order

    # ============ 审批 ============

    async def approve(
        self,
        work_order_id: str,
        approver: SessionUser,
        remarks: Optional[str] = None,
        guard: Optional[OrderGuard] = None,
    ) -> WorkOrderRecord:
        """
        审批通过

        审批后提交的子类型（资金类）此时才调用第三方，结果为处理中或失败；
        其余子类型直接通过。

        Args:
            work_order_id: 工单 ID
            approver: 审批人
            remarks: 审批备注
            guard: 加锁后执行的检查

        Returns:
            工单记录
        """
        with self._transaction("审批工单") as session:
            now = self.clock()
            order = self._load_for_update(session, work_order_id)
            if guard is not None:
                guard(order)
            ensure_status_in(order.status, frozenset({S.PENDING}), "审批")
            handler = get_handler(order.work_order_subtype)
            trace_id = generate_trace_id()
            log = task_logger(logger, order.task_number, trace_id, order.id)
            previous = self._snapshot(order)

            order.remark = remarks
            order.assignee_id = order.assignee_id or approver.user_id
            order.updated_at = now
            business = order.business_data

            if handler.submit_on_approve:
                raw = order.latest_raw_data
                request_body = self._stored_request(raw)
                # 失败后修改再审批的请求已带第三方任务 ID，走更新接口
                result = await self.gateway.call(
                    handler.endpoint_for(is_update="taskId" in request_body), request_body, trace_id
                )
                self._apply_gateway_result(order, raw, business, result, now, log)
            else:
                ensure_transition(order.status, S.APPROVED, "审批")
                order.status = S.APPROVED.value
                if business is not None:
                    business.application_status = S.APPROVED.value
                    business.updated_at = now

            self.audit.record(
                session,
                order.id,
                AuditAction.APPROVE,
                approver.user_id,
                self._snapshot(order, remarks=remarks, approvedBy=approver.user_id),
                previous=previous,
                now=now,
            )
            session.flush()

        log.info(f"[{order.task_number}] 审批完成: status={order.status}, approver={approver.user_id}")
        return order

    @staticmethod
    def _stored_request(raw: Optional[RawDataRecord]) -> Dict[str, Any]:
        """取最新原始数据中的请求体（去掉旧 traceId）"""
        if raw is None:
            raise TransactionError("工单缺少原始数据")
        body = json.loads(raw.request_data)
        body.pop("traceId", None)
        return body

    def _require_reason(self, reason: Optional[str], label: str) -> str:
        if not reason or not reason.strip():
            raise ValidationError(
                f"{label}不能为空", [FieldIssue(path="reason", message=f"{label}不能为空")]
            )
        return reason.strip()

    async def reject(
        self,
        work_order_id: str,
        approver: SessionUser,
        reason: str,
        guard: Optional[OrderGuard] = None,
    ) -> WorkOrderRecord:
        """
        审批拒绝，原因必填

        Args:
            work_order_id: 工单 ID
            approver: 审批人
            reason: 拒绝原因

        Returns:
            工单记录
        """
        reason = self._require_reason(reason, "拒绝原因")
        with self._transaction("拒绝工单") as session:
            now = self.clock()
            order = self._load_for_update(session, work_order_id)
            if guard is not None:
                guard(order)
            ensure_status_in(order.status, frozenset({S.PENDING}), "拒绝")
            ensure_transition(order.status, S.REJECTED, "拒绝")
            previous = self._snapshot(order)

            order.status = S.REJECTED.value
            order.remark = reason
            order.updated_at = now
            if order.business_data is not None:
                order.business_data.application_status = S.REJECTED.value
                order.business_data.failure_reason = reason
                order.business_data.updated_at = now

            self.audit.record(
                session,
                order.id,
                AuditAction.REJECT,
                approver.user_id,
                self._snapshot(order, reason=reason, rejectedBy=approver.user_id),
                previous=previous,
                now=now,
            )

        logger.info(f"[{order.task_number}] 工单已拒绝: approver={approver.user_id}")
        return order

    async def return_for_modification(
        self,
        work_order_id: str,
        reviewer: SessionUser,
        reason: str,
        guard: Optional[OrderGuard] = None,
    ) -> WorkOrderRecord:
        """退回修改：待处理 → 待修改"""
        reason = self._require_reason(reason, "退回原因")
        with self._transaction("退回工单") as session:
            now = self.clock()
            order = self._load_for_update(session, work_order_id)
            if guard is not None:
                guard(order)
            ensure_transition(order.status, S.RETURNED, "退回修改")
            previous = self._snapshot(order)

            order.status = S.RETURNED.value
            order.remark = reason
            order.updated_at = now
            if order.business_data is not None:
                order.business_data.application_status = S.RETURNED.value
                order.business_data.updated_at = now

            self.audit.record(
                session,
                order.id,
                AuditAction.RETURN,
                reviewer.user_id,
                self._snapshot(order, reason=reason),
                previous=previous,
                now=now,
            )

        logger.info(f"[{order.task_number}] 工单已退回修改: reviewer={reviewer.user_id}")
        return order

    async def cancel(self, work_order_id: str, actor: SessionUser) -> WorkOrderRecord:
        """提交人取消工单"""
        with self._transaction("取消工单") as session:
            now = self.clock()
            order = self._load_for_update(session, work_order_id)
            self._check_owner(order, actor, "取消")
            ensure_status_in(order.status, CANCELABLE_STATUSES, "取消")
            ensure_transition(order.status, S.CANCELED, "取消")
            previous = self._snapshot(order)

            order.status = S.CANCELED.value
            order.updated_at = now
            if order.business_data is not None:
                order.business_data.application_status = S.CANCELED.value
                order.business_data.updated_at = now

            self.audit.record(
                session,
                order.id,
                AuditAction.CANCEL,
                actor.user_id,
                self._snapshot(order),
                previous=previous,
                now=now,
            )

        logger.info(f"[{order.task_number}] 工单已取消: user={actor.user_id}")
        return order

    # ============ 第三方对账 ============

    async def bind_external_task_id(
        self,
        work_order_id: str,
        external_task_id: str,
        actor: SessionUser,
        guard: Optional[OrderGuard] = None,
    ) -> WorkOrderRecord:
        """
        人工绑定第三方任务 ID：待处理 → 处理中

        Raises:
            ValidationError: 任务 ID 为空或已绑定到其他工单
        """
        external_task_id = (external_task_id or "").strip()
        if not external_task_id:
            raise ValidationError(
                "第三方任务ID不能为空",
                [FieldIssue(path="taskId", message="第三方任务ID不能为空")],
            )

        with self._transaction("绑定第三方任务ID") as session:
            now = self.clock()
            order = self._load_for_update(session, work_order_id)
            if guard is not None:
                guard(order)
            ensure_transition(order.status, S.PROCESSING, "绑定第三方任务ID")

            duplicate = session.execute(
                select(WorkOrderRecord.id).where(
                    WorkOrderRecord.task_id == external_task_id,
                    WorkOrderRecord.id != order.id,
                    WorkOrderRecord.is_deleted.is_(False),
                )
            ).first()
            if duplicate is not None:
                raise ValidationError(
                    "该申请ID已被其他工单绑定，不能重复绑定", code=ErrorCode.INVALID_PARAMETER
                )

            previous = self._snapshot(order)
            order.task_id = external_task_id
            order.status = S.PROCESSING.value
            order.updated_at = now

            raw = order.latest_raw_data
            if raw is not None:
                raw.sync_status = SyncStatus.SUCCESS.value
                raw.sync_error = None
                raw.last_sync_time = now
                raw.updated_at = now
            if order.business_data is not None:
                order.business_data.application_status = S.PROCESSING.value
                order.business_data.failure_reason = None
                order.business_data.updated_at = now

            self.audit.record(
                session,
                order.id,
                AuditAction.UPDATE_EXTERNAL_TASK_ID,
                actor.user_id,
                self._snapshot(order),
                previous=previous,
                now=now,
            )

        logger.info(f"[{order.task_number}] 已绑定第三方任务ID: {external_task_id}")
        return order

    async def handle_callback(
        self,
        task_id: str,
        status: Any,
        message: Optional[str] = None,
        payload: Any = None,
    ) -> WorkOrderRecord:
        """
        第三方完成回调：处理中 → 已完成 / 失败

        Args:
            task_id: 第三方任务 ID（也接受工单 id / 工单编号）
            status: 回调状态（SUCCESS / FAILED / 0 / 1 ...）
            message: 回调说明
            payload: 回调原文
        """
        target = CALLBACK_STATUS_MAP.get(str(status).strip().upper())
        if target is None:
            raise ValidationError(
                f"无法识别的回调状态: {status}",
                [FieldIssue(path="status", message="无法识别的回调状态")],
            )

        with self._transaction("处理第三方回调") as session:
            now = self.clock()
            order = self._load_for_update(session, task_id)
            ensure_transition(order.status, target, "回调更新")
            previous = self._snapshot(order)

            order.status = target.value
            order.updated_at = now

            raw = order.latest_raw_data
            if raw is not None:
                raw.response_data = dump_json(payload) if payload is not None else raw.response_data
                raw.last_sync_time = now
                raw.updated_at = now
                if target == S.FAILED:
                    raw.sync_status = SyncStatus.FAILED.value
                    raw.sync_error = message or "第三方处理失败"
            if order.business_data is not None:
                order.business_data.application_status = target.value
                order.business_data.failure_reason = message if target == S.FAILED else None
                order.business_data.updated_at = now

            self.audit.record(
                session,
                order.id,
                AuditAction.CALLBACK,
                CALLBACK_ACTOR,
                self._snapshot(order, message=message),
                previous=previous,
                now=now,
            )

        logger.info(f"[{order.task_number}] 第三方回调处理完成: status={order.status}")
        return order
