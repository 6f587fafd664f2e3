import logging
import sys
from logging.handlers import RotatingFileHandler
from datetime import datetime
from pathlib import Path
import json


class JSONFormatter(logging.Formatter):
    """تنسيق خاص لسجلات الأداء (JSON)"""

    def format(self, record):
        if isinstance(record.msg, dict):
            log_data = dict(record.msg)
            log_data['level'] = record.levelname
            log_data['timestamp'] = datetime.now().isoformat()
            return json.dumps(log_data)
        return super().format(record)


def setup_logging(level: str = "INFO", log_dir: str = "logs"):
    """إعداد نظام التسجيل (Logging) للتطبيق"""

    log_level = getattr(logging, level.upper(), logging.INFO)
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # إنشاء logger رئيسي
    logger = logging.getLogger()
    logger.setLevel(log_level)

    # إزالة أي معالجات موجودة
    logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # معالج للتحكم (stdout)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # معالج لملف السجلات العامة
    file_handler = RotatingFileHandler(
        log_path / 'trading_bot.log',
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # معالج منفصل لسجلات الأخطاء
    error_handler = RotatingFileHandler(
        log_path / 'trading_errors.log',
        maxBytes=5*1024*1024,  # 5MB
        backupCount=3
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)
    logger.addHandler(error_handler)

    # معالج لسجلات أداء الدورات
    performance_handler = RotatingFileHandler(
        log_path / 'performance_metrics.log',
        maxBytes=10*1024*1024,
        backupCount=5
    )
    performance_handler.setLevel(logging.INFO)
    performance_handler.setFormatter(JSONFormatter())

    perf_logger = logging.getLogger('performance')
    perf_logger.setLevel(logging.INFO)
    perf_logger.handlers.clear()
    perf_logger.addHandler(performance_handler)
    perf_logger.propagate = False

    # تعطيل logging لبعض المكتبات الصاخبة
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('websockets').setLevel(logging.WARNING)

    logger.info("Logging configured")
