"""파일 핸들러 유틸리티 테스트"""

import unittest
import tempfile
import shutil
import os
import sys

# 상위 디렉토리의 모듈들을 import 하기 위해 경로 추가
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils.file_handler import (
    ensure_directory_exists, get_safe_filename, save_json_file, load_json_file, delete_file_if_exists,
)


class TestFileHandler(unittest.TestCase):
    """파일 핸들러 유틸리티 함수 테스트"""

    def setUp(self):
        """테스트 시작 전 설정"""
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        """테스트 종료 후 정리"""
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_ensure_directory_exists_nested_directory(self):
        """중첩 디렉토리 생성 테스트"""
        nested_dir = os.path.join(self.temp_dir, "level1", "level2")
        self.assertFalse(os.path.exists(nested_dir))

        self.assertTrue(ensure_directory_exists(nested_dir))
        self.assertTrue(os.path.isdir(nested_dir))
        self.assertTrue(ensure_directory_exists(nested_dir))

    def test_get_safe_filename(self):
        """안전하지 않은 문자는 언더스코어로 바뀐다"""
        self.assertEqual(get_safe_filename("normal_file.txt"), "normal_file.txt")
        self.assertEqual(get_safe_filename('a<b>c:d"e/f\\g|h?i*j'), "a_b_c_d_e_f_g_h_i_j")
        self.assertEqual(get_safe_filename("  padded.json  "), "padded.json")

    def test_save_and_load_json_file(self):
        path = os.path.join(self.temp_dir, "sub", "state.json")
        save_json_file(path, {'form': {'barCode': "R-1"}, 'note': "한글"})

        self.assertFalse(os.path.exists(path + ".tmp"))
        self.assertEqual(load_json_file(path), {'form': {'barCode': "R-1"}, 'note': "한글"})

    def test_load_json_file_missing_or_corrupt(self):
        self.assertIsNone(load_json_file(os.path.join(self.temp_dir, "missing.json")))

        corrupt = os.path.join(self.temp_dir, "corrupt.json")
        with open(corrupt, 'w', encoding='utf-8') as f:
            f.write("{")
        self.assertIsNone(load_json_file(corrupt))

    def test_delete_file_if_exists(self):
        path = os.path.join(self.temp_dir, "x.json")
        save_json_file(path, {})
        delete_file_if_exists(path)
        self.assertFalse(os.path.exists(path))
        delete_file_if_exists(path)


if __name__ == '__main__':
    unittest.main()
