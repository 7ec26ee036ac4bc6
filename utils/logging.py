import logging
import logging.handlers
import os
import json
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any
from fastapi import Request

from utils.config import AppConfig


class FocusLogger:
    """Application logger with request, AI, database and timer event tracking"""

    def __init__(self,
                 log_file: str = AppConfig.LOG_FILE,
                 max_file_size: int = 10 * 1024 * 1024,  # 10MB
                 backup_count: int = 5,
                 log_level: str = AppConfig.LOG_LEVEL):

        self.log_file = log_file
        self.max_file_size = max_file_size
        self.backup_count = backup_count

        log_dir = Path(log_file).parent
        log_dir.mkdir(parents=True, exist_ok=True)

        self.logger = logging.getLogger("focusflow")
        self.logger.setLevel(getattr(logging, log_level.upper()))

        # Remove existing handlers to avoid duplicates
        self.logger.handlers.clear()

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        console_handler = logging.StreamHandler()

        formatter = logging.Formatter(
            '%(asctime)s | %(levelname)-8s | %(name)-20s | %(funcName)-15s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        file_handler.setFormatter(formatter)
        console_handler.setFormatter(formatter)

        self.logger.addHandler(file_handler)
        self.logger.addHandler(console_handler)

        self.stats = {
            "total_requests": 0,
            "failed_requests": 0,
            "ai_requests": 0,
            "cache_hits": 0,
            "cache_misses": 0,
            "start_time": time.time()
        }

        self.logger.info("🚀 FocusFlow logging initialized")
        self.logger.info(f"📁 Log file: {log_file}")

    def log_request_start(self, request: Request, endpoint: str, user_id: Optional[str] = None):
        """Log the start of a request with details"""
        client_ip = request.client.host if request.client else "unknown"

        request_info = {
            "endpoint": endpoint,
            "method": request.method,
            "client_ip": client_ip,
            "user_id": user_id or "anonymous",
            "timestamp": datetime.now().isoformat()
        }

        self.logger.info(f"🔵 REQUEST START | {endpoint} | User: {user_id or 'anonymous'} | IP: {client_ip}")
        return request_info

    def log_request_end(self, request_info: Dict[str, Any], duration_ms: float, status_code: int = 200):
        """Log the end of a request with timing"""
        self.stats["total_requests"] += 1
        if status_code >= 400:
            self.stats["failed_requests"] += 1

        status_emoji = "✅" if status_code < 400 else "❌"
        self.logger.info(
            f"{status_emoji} REQUEST END | {request_info['endpoint']} | User: {request_info['user_id']} | "
            f"Duration: {duration_ms:.2f}ms | Status: {status_code}"
        )

    def log_ai_request(self, agent_type: str, summary: str, duration_ms: float, user_id: Optional[str] = None):
        """Log generative model calls"""
        self.stats["ai_requests"] += 1
        self.logger.info(
            f"🤖 AI REQUEST | {agent_type} | {summary[:60]} | Duration: {duration_ms:.2f}ms | "
            f"User: {user_id or 'anonymous'}"
        )

    def log_database_query(self, query_type: str, table: str, duration_ms: float, user_id: Optional[str] = None):
        """Log database operations"""
        self.logger.debug(
            f"🗄️ DATABASE | {query_type} | Table: {table} | Duration: {duration_ms:.2f}ms | "
            f"User: {user_id or 'system'}"
        )

    def log_timer_event(self, timer: str, event: str, subject: str, time_left: int, user_id: Optional[str] = None):
        """Log timer state transitions"""
        self.logger.info(
            f"⏱️ TIMER | {timer} | {event} | Subject: {subject} | Time left: {time_left}s | "
            f"User: {user_id or 'anonymous'}"
        )

    def log_cache_hit(self, key: str, endpoint: str):
        self.stats["cache_hits"] += 1
        self.logger.debug(f"🟢 CACHE HIT | {endpoint} | Key: {key[:50]}")

    def log_cache_miss(self, key: str, endpoint: str):
        self.stats["cache_misses"] += 1
        self.logger.debug(f"🔴 CACHE MISS | {endpoint} | Key: {key[:50]}")

    def log_error(self, error: Exception, endpoint: str, user_id: Optional[str] = None, extra_context: Dict = None):
        """Log errors with context"""
        context = f" | Context: {json.dumps(extra_context, default=str)}" if extra_context else ""

        self.logger.error(
            f"💥 ERROR | {endpoint} | {type(error).__name__}: {str(error)} | "
            f"User: {user_id or 'anonymous'}{context}",
            exc_info=True
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get current logging statistics"""
        uptime_hours = (time.time() - self.stats["start_time"]) / 3600

        return {
            "total_requests": self.stats["total_requests"],
            "failed_requests": self.stats["failed_requests"],
            "ai_requests": self.stats["ai_requests"],
            "cache_hits": self.stats["cache_hits"],
            "cache_misses": self.stats["cache_misses"],
            "uptime_hours": round(uptime_hours, 2),
            "log_file": self.log_file,
            "log_file_size_mb": round(os.path.getsize(self.log_file) / (1024*1024), 2) if os.path.exists(self.log_file) else 0
        }

    def log_periodic_stats(self):
        """Log periodic request statistics"""
        stats = self.get_stats()

        self.logger.info(
            f"📊 PERIODIC STATS | Requests: {stats['total_requests']} | "
            f"Failed: {stats['failed_requests']} | AI calls: {stats['ai_requests']} | "
            f"Uptime: {stats['uptime_hours']}h | Log Size: {stats['log_file_size_mb']}MB"
        )


# Global logger instance
focus_logger = FocusLogger()


# Convenience functions for easy usage
def log_request_start(request: Request, endpoint: str, user_id: Optional[str] = None):
    return focus_logger.log_request_start(request, endpoint, user_id)

def log_request_end(request_info: Dict[str, Any], duration_ms: float, status_code: int = 200):
    focus_logger.log_request_end(request_info, duration_ms, status_code)

def log_ai_request(agent_type: str, summary: str, duration_ms: float, user_id: Optional[str] = None):
    focus_logger.log_ai_request(agent_type, summary, duration_ms, user_id)

def log_database_query(query_type: str, table: str, duration_ms: float, user_id: Optional[str] = None):
    focus_logger.log_database_query(query_type, table, duration_ms, user_id)

def log_timer_event(timer: str, event: str, subject: str, time_left: int, user_id: Optional[str] = None):
    focus_logger.log_timer_event(timer, event, subject, time_left, user_id)

def log_cache_hit(key: str, endpoint: str):
    focus_logger.log_cache_hit(key, endpoint)

def log_cache_miss(key: str, endpoint: str):
    focus_logger.log_cache_miss(key, endpoint)

def log_error(error: Exception, endpoint: str, user_id: Optional[str] = None, extra_context: Dict = None):
    focus_logger.log_error(error, endpoint, user_id, extra_context)

def get_logging_stats():
    return focus_logger.get_stats()

def log_periodic_stats():
    focus_logger.log_periodic_stats()
