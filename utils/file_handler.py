"""파일 처리 유틸리티 모듈"""

import json
import os
import re
import sys
from typing import Optional, Dict, Any


def resource_path(relative_path: str) -> str:
    """ PyInstaller로 패키징했을 때의 리소스 경로를 가져옵니다. """
    try:
        base_path = sys._MEIPASS
    except AttributeError:
        # 메인 스크립트의 디렉토리를 기준으로 설정
        base_path = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(base_path, relative_path)


def ensure_directory_exists(directory_path: str) -> bool:
    """디렉토리가 없으면 생성합니다."""
    try:
        if not os.path.exists(directory_path):
            os.makedirs(directory_path, exist_ok=True)
        return True
    except OSError as e:
        print(f"디렉토리 생성 실패: {e}")
        return False


def get_safe_filename(filename: str) -> str:
    """파일명에서 안전하지 않은 문자를 제거합니다."""
    # 파일명에 사용할 수 없는 문자들을 언더스코어로 대체
    safe_name = re.sub(r'[<>:"/\\|?*]', '_', filename)
    return safe_name.strip()


def save_json_file(file_path: str, data: Dict[str, Any]) -> None:
    """JSON 파일을 임시 파일에 쓴 뒤 교체하여 저장합니다."""
    directory = os.path.dirname(file_path)
    if directory:
        ensure_directory_exists(directory)
    temp_path = f"{file_path}.tmp"
    with open(temp_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=4)
    os.replace(temp_path, file_path)


def load_json_file(file_path: str) -> Optional[Dict[str, Any]]:
    """JSON 파일을 읽습니다. 파일이 없거나 손상되었으면 None을 반환합니다."""
    if not os.path.exists(file_path):
        return None
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        print(f"JSON 파일 읽기 오류 ({file_path}): {e}")
        return None


def delete_file_if_exists(file_path: str) -> None:
    if os.path.exists(file_path):
        try:
            os.remove(file_path)
        except OSError as e:
            print(f"파일 삭제 실패: {e}")
