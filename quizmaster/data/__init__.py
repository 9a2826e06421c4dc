"""
Data Management Package
=======================
Import ngân hàng câu hỏi cho Quiz Master

Modules:
- importer: Import môn/chương/quiz/câu hỏi từ JSON (flask import-quizzes)
"""

import os

# Đường dẫn đến thư mục data
DATA_DIR = os.path.dirname(os.path.abspath(__file__))

# File dữ liệu mẫu
SAMPLE_QUIZZES_JSON = os.path.join(DATA_DIR, 'sample_quizzes.json')

__all__ = ['DATA_DIR', 'SAMPLE_QUIZZES_JSON']
