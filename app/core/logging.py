"""
구조화된 로깅

운영 환경은 한 줄 JSON, debug 모드는 사람이 읽기 쉬운 형식으로 출력합니다.
요청 ID와 호출자 ID는 ContextVar로 전달되어 같은 요청의 모든 로그에 붙습니다.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Optional

from app.core.config import Settings

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

# LogRecord 기본 속성 (extra 필드와 구분용)
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime", "taskName"}

_QUIET_LOGGERS = ("uvicorn.access", "motor", "pymongo", "aiokafka")

DEBUG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class StructuredFormatter(logging.Formatter):
    """JSON 로그 포매터"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcfromtimestamp(record.created).isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = {"request_id": request_id_var.get(), "user_id": user_id_var.get()}
        log_data.update({key: value for key, value in context.items() if value})

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        extra = {
            key: value for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith('_')
        }
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, ensure_ascii=False, default=str)


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(settings: Settings):
    """루트 로거 초기화 (create_app에서 호출)"""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_formatter = logging.Formatter(DEBUG_FORMAT) if settings.debug else StructuredFormatter()
    root_logger.addHandler(_handler(logging.StreamHandler(sys.stdout), level, console_formatter))

    if settings.log_dir:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        # 파일 로그는 항상 JSON
        root_logger.addHandler(_handler(
            logging.FileHandler(log_dir / "deal-chat.log", encoding='utf-8'), level, StructuredFormatter()
        ))
        root_logger.addHandler(_handler(
            logging.FileHandler(log_dir / "deal-chat.error.log", encoding='utf-8'), logging.ERROR, StructuredFormatter()
        ))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_request_context(request_id: str, user_id: Optional[str] = None):
    request_id_var.set(request_id)
    if user_id:
        user_id_var.set(user_id)


def clear_request_context():
    request_id_var.set(None)
    user_id_var.set(None)


def _log_event(logger: logging.Logger, level: int, message: str, event_type: str, **fields):
    logger.log(level, message, extra={"event_type": event_type, **fields})


def log_api_call(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **extra
):
    """HTTP 요청 1건"""
    level = logging.WARNING if status_code >= 500 else logging.INFO
    _log_event(
        logger, level, f"{method} {path} - {status_code}", "api_call",
        method=method, path=path, status_code=status_code,
        duration_ms=round(duration_ms, 2), **extra
    )


def log_websocket_event(logger: logging.Logger, event: str, user_id: str, room_id: str, **extra):
    """WebSocket 연결/해제/수신"""
    _log_event(
        logger, logging.INFO, f"WebSocket {event} - User {user_id} in Room {room_id}", "websocket",
        event=event, user_id=user_id, room_id=room_id, **extra
    )


def log_room_transition(
    logger: logging.Logger,
    action: str,
    room_id: str,
    user_id: str,
    status: str,
    deal_status: str,
    **extra
):
    """채팅방 상태 전이 (중재, 종료/재개, 거래 확정)"""
    _log_event(
        logger, logging.INFO, f"Room {room_id} {action} by {user_id} -> {status}/{deal_status}", "room_transition",
        action=action, room_id=room_id, user_id=user_id, status=status, deal_status=deal_status, **extra
    )


def log_security_event(
    logger: logging.Logger,
    event: str,
    severity: str = "medium",
    ip_address: Optional[str] = None,
    **extra
):
    """인증 실패 등 보안 이벤트"""
    _log_event(
        logger, logging.WARNING, f"Security {event} - Severity: {severity}", "security",
        event=event, severity=severity, ip_address=ip_address, **extra
    )
