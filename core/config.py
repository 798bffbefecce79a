"""설정 관리 모듈"""

import json
import os
import sys
from typing import Dict, Any, Optional


def get_application_path() -> str:
    """실행 파일(또는 소스) 기준 애플리케이션 경로를 반환합니다."""
    if getattr(sys, 'frozen', False):
        return os.path.dirname(sys.executable)
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class ConfigManager:
    """애플리케이션 설정을 관리하는 클래스"""

    def __init__(self, config_file: str = "config.json", base_dir: Optional[str] = None):
        self.config_file = config_file
        self.base_dir = base_dir or get_application_path()
        self.config = self._load_config()

    @property
    def config_path(self) -> str:
        return os.path.join(self.base_dir, self.config_file)

    def _load_config(self) -> Dict[str, Any]:
        """설정 파일을 로드합니다."""
        try:
            if os.path.exists(self.config_path):
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            else:
                # 기본 설정 생성
                return self._create_default_config()
        except (FileNotFoundError, json.JSONDecodeError) as e:
            print(f"설정 파일 로드 오류: {e}")
            return self._create_default_config()

    @staticmethod
    def default_config() -> Dict[str, Any]:
        return {
            "app": {
                "name": "Fabric Inspection Worker",
                "version": "v1.0.0",
                "description": "원단 롤 품질 검사 시스템"
            },
            "api": {
                "base_url": "http://localhost:5000/api/quality",
                "catalog_base_url": "http://localhost:5000/api",
                "timeout_sec": 10,
                "headers": {}
            },
            "telemetry": {
                "status_interval_ms": 5000,
                "value_interval_ms": 1000
            },
            "inspection": {
                "operator_id": None,
                "defect_default_span": 0.1,
                "defect_pedal_key": "F12",
                "sound_enabled": True
            },
            "ui": {
                "window_title": "원단 롤 검사 시스템",
                "window_geometry": "1400x800"
            },
            "logging": {
                "enabled": True,
                "log_dir": "logs",
                "log_file": "fabric_inspection_log.csv",
                "session_file": "session_state.json"
            }
        }

    def _create_default_config(self) -> Dict[str, Any]:
        """기본 설정을 생성합니다."""
        default_config = self.default_config()
        self.save_config(default_config)
        return default_config

    def get(self, key_path: str, default=None):
        """점 표기법으로 설정값을 가져옵니다. 예: 'api.base_url'"""
        keys = key_path.split('.')
        value = self.config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key_path: str, value):
        """점 표기법으로 설정값을 설정합니다."""
        keys = key_path.split('.')
        config = self.config

        for key in keys[:-1]:
            if key not in config:
                config[key] = {}
            config = config[key]

        config[keys[-1]] = value

    def save_config(self, config_data=None):
        """설정을 파일로 저장합니다."""
        try:
            data = config_data if config_data is not None else self.config

            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=4)
        except OSError as e:
            print(f"설정 파일 저장 오류: {e}")
